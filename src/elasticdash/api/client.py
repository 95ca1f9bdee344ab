"""Async HTTP client for the public ElasticDash API."""

from __future__ import annotations

import logging
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from ..config import ClientConfig
from ..errors import (
    FetchUnavailable,
    PermanentTransportError,
    ResourceNotFound,
    TransientTransportError,
)
from ..version import __version__
from .models import IngestionResponse, PromptModel, prompt_adapter


logger = logging.getLogger(__name__)


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After is either delta-seconds or an HTTP date."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _query_params(**values: Any) -> dict[str, Any]:
    """Drop unset filters; datetimes go out as ISO 8601."""
    params: dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        params[name] = value.isoformat() if isinstance(value, datetime) else value
    return params


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Maps HTTP outcomes onto the SDK's error taxonomy:
    - connect errors, timeouts, 429 and 5xx -> TransientTransportError
    - other 4xx -> PermanentTransportError
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        auth = None
        if config.public_key and config.secret_key:
            auth = httpx.BasicAuth(config.public_key, config.secret_key)

        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            auth=auth,
            headers=self._get_headers(),
            transport=transport,
        )

    def _get_headers(self) -> dict[str, str]:
        """Build request headers."""
        headers = {
            "x-elasticdash-sdk-name": "python",
            "x-elasticdash-sdk-version": __version__,
        }
        if self.config.public_key:
            headers["x-elasticdash-public-key"] = self.config.public_key
        headers.update(self.config.additional_headers)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                path,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Request timeout: {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(
                f"Failed to reach {self.config.base_url}: {e}"
            ) from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientTransportError(
                f"{method} {path} returned {status}",
                status_code=status,
                retry_after_seconds=_parse_retry_after(response.headers.get("retry-after")),
            )
        if status >= 400:
            raise PermanentTransportError(
                f"{method} {path} returned {status}: {response.text[:200]}",
                status_code=status,
            )
        return response

    async def ingest(self, batch: list[dict[str, Any]]) -> IngestionResponse:
        """Send an ingestion batch. Returns per-event successes and errors."""
        response = await self._request(
            "POST", "/api/public/ingestion", json={"batch": batch}
        )
        if not response.content:
            return IngestionResponse()
        return IngestionResponse.model_validate(response.json())

    async def get_prompt(
        self,
        name: str,
        version: int | None = None,
        label: str | None = None,
        timeout: float | None = None,
    ) -> PromptModel:
        """
        Fetch a prompt by name and version or label.

        Raises:
            ResourceNotFound: The prompt does not exist
            FetchUnavailable: Network failure, timeout, 429 or 5xx
        """
        params: dict[str, Any] = {}
        if version is not None:
            params["version"] = version
        if label is not None:
            params["label"] = label

        key = f"{name} (version={version}, label={label})"
        try:
            response = await self._request(
                "GET",
                f"/api/public/v2/prompts/{quote(name, safe='')}",
                params=params,
                timeout=timeout,
            )
        except TransientTransportError as e:
            raise FetchUnavailable(key, str(e)) from e
        except PermanentTransportError as e:
            if e.status_code == 404:
                raise ResourceNotFound(key) from e
            raise

        return prompt_adapter.validate_python(response.json())

    async def create_prompt(self, body: dict[str, Any]) -> PromptModel:
        """Create a new prompt version."""
        response = await self._request("POST", "/api/public/v2/prompts", json=body)
        return prompt_adapter.validate_python(response.json())

    async def update_prompt_labels(
        self, name: str, version: int, new_labels: list[str]
    ) -> PromptModel:
        """Set labels on an existing prompt version."""
        response = await self._request(
            "PATCH",
            f"/api/public/v2/prompts/{quote(name, safe='')}/versions/{version}",
            json={"newLabels": new_labels},
        )
        return prompt_adapter.validate_python(response.json())

    async def _get_one(self, path: str, key: str) -> dict[str, Any]:
        try:
            response = await self._request("GET", path)
        except PermanentTransportError as e:
            if e.status_code == 404:
                raise ResourceNotFound(key) from e
            raise
        return response.json()

    async def get_trace(self, trace_id: str) -> dict[str, Any]:
        """A trace with its observations and scores."""
        return await self._get_one(
            f"/api/public/traces/{quote(trace_id, safe='')}", f"trace {trace_id}"
        )

    async def list_traces(
        self,
        *,
        page: int | None = None,
        limit: int | None = None,
        user_id: str | None = None,
        name: str | None = None,
        session_id: str | None = None,
        tags: list[str] | None = None,
        environment: str | None = None,
        from_timestamp: datetime | None = None,
        to_timestamp: datetime | None = None,
    ) -> dict[str, Any]:
        """One page of traces: {"data": [...], "meta": {...}}."""
        params = _query_params(
            page=page,
            limit=limit,
            userId=user_id,
            name=name,
            sessionId=session_id,
            tags=tags,
            environment=environment,
            fromTimestamp=from_timestamp,
            toTimestamp=to_timestamp,
        )
        response = await self._request("GET", "/api/public/traces", params=params)
        return response.json()

    async def get_observation(self, observation_id: str) -> dict[str, Any]:
        return await self._get_one(
            f"/api/public/observations/{quote(observation_id, safe='')}",
            f"observation {observation_id}",
        )

    async def list_observations(
        self,
        *,
        page: int | None = None,
        limit: int | None = None,
        name: str | None = None,
        user_id: str | None = None,
        type: str | None = None,
        trace_id: str | None = None,
        parent_observation_id: str | None = None,
        environment: str | None = None,
        from_start_time: datetime | None = None,
        to_start_time: datetime | None = None,
    ) -> dict[str, Any]:
        """One page of observations: {"data": [...], "meta": {...}}."""
        params = _query_params(
            page=page,
            limit=limit,
            name=name,
            userId=user_id,
            type=type,
            traceId=trace_id,
            parentObservationId=parent_observation_id,
            environment=environment,
            fromStartTime=from_start_time,
            toStartTime=to_start_time,
        )
        response = await self._request("GET", "/api/public/observations", params=params)
        return response.json()

    async def get_session(self, session_id: str) -> dict[str, Any]:
        """A session with its traces."""
        return await self._get_one(
            f"/api/public/sessions/{quote(session_id, safe='')}", f"session {session_id}"
        )

    async def list_projects(self) -> list[dict[str, Any]]:
        """Projects visible to the configured key pair."""
        response = await self._request("GET", "/api/public/projects")
        return response.json().get("data", [])

    async def aclose(self) -> None:
        await self._client.aclose()
