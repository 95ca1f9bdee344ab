"""
Pydantic models for the public API payloads the SDK sends and receives.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ChatMessage(BaseModel):
    """A single message of a chat prompt."""

    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class _PromptBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    version: int
    config: dict[str, Any] = Field(default_factory=dict)
    labels: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    commit_message: str | None = Field(None, alias="commitMessage")


class TextPromptModel(_PromptBase):
    """Text prompt as returned by the prompts endpoint."""

    type: Literal["text"] = "text"
    prompt: str


class ChatPromptModel(_PromptBase):
    """Chat prompt as returned by the prompts endpoint."""

    type: Literal["chat"] = "chat"
    prompt: list[ChatMessage]


PromptModel = Annotated[
    Union[TextPromptModel, ChatPromptModel], Field(discriminator="type")
]

prompt_adapter = TypeAdapter(PromptModel)


class ScoreBody(BaseModel):
    """Body of a score-create ingestion event."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "6f0c6c2e-...",
                "name": "quality",
                "value": 0.8,
                "traceId": "trace-123",
                "dataType": "NUMERIC",
            }
        },
    )

    id: str
    name: str = Field(..., min_length=1)
    value: float | str
    trace_id: str | None = Field(None, alias="traceId")
    observation_id: str | None = Field(None, alias="observationId")
    session_id: str | None = Field(None, alias="sessionId")
    dataset_run_id: str | None = Field(None, alias="datasetRunId")
    comment: str | None = None
    data_type: Literal["NUMERIC", "CATEGORICAL", "BOOLEAN"] | None = Field(
        None, alias="dataType"
    )
    config_id: str | None = Field(None, alias="configId")
    metadata: dict[str, Any] | None = None
    environment: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class IngestionSuccess(BaseModel):
    id: str
    status: int


class IngestionError(BaseModel):
    id: str
    status: int
    message: str | None = None
    error: Any = None


class IngestionResponse(BaseModel):
    """Per-event outcome of an ingestion batch (HTTP 207)."""

    successes: list[IngestionSuccess] = Field(default_factory=list)
    errors: list[IngestionError] = Field(default_factory=list)
