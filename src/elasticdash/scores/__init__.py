"""Score submission."""

from .manager import ScoreManager

__all__ = ["ScoreManager"]
