"""Tests for the HTTP layer, against httpx.MockTransport."""

import base64
from datetime import datetime, timezone

import httpx
import pytest

from elasticdash.api.client import ApiClient, _parse_retry_after
from elasticdash.api.models import ChatPromptModel, TextPromptModel
from elasticdash.errors import (
    FetchUnavailable,
    PermanentTransportError,
    ResourceNotFound,
    TransientTransportError,
)
from elasticdash.telemetry.events import Event, EventType
from elasticdash.telemetry.transport import HttpTransport
from elasticdash.version import __version__


TEXT_PROMPT = {
    "name": "greeting",
    "version": 3,
    "type": "text",
    "prompt": "Hello {{name}}",
    "labels": ["production"],
    "config": {"temperature": 0.2},
}

CHAT_PROMPT = {
    "name": "critic",
    "version": 1,
    "type": "chat",
    "prompt": [
        {"role": "system", "content": "You review {{kind}}."},
        {"role": "user", "content": "{{title}}"},
    ],
}


def make_api(client_config, api_requests, handler) -> ApiClient:
    def record(request: httpx.Request) -> httpx.Response:
        api_requests.append(request)
        return handler(request)

    return ApiClient(client_config, transport=httpx.MockTransport(record))


class TestHeaders:
    @pytest.mark.asyncio
    async def test_auth_and_sdk_headers(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json={}))

        await api.ingest([])

        request = api_requests[0]
        expected = base64.b64encode(b"pk-test:sk-test").decode()
        assert request.headers["authorization"] == f"Basic {expected}"
        assert request.headers["x-elasticdash-sdk-name"] == "python"
        assert request.headers["x-elasticdash-sdk-version"] == __version__
        assert request.headers["x-elasticdash-public-key"] == "pk-test"
        await api.aclose()

    @pytest.mark.asyncio
    async def test_additional_headers(self, client_config, api_requests):
        client_config.additional_headers = {"x-tenant": "acme"}
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json={}))

        await api.ingest([])

        assert api_requests[0].headers["x-tenant"] == "acme"
        await api.aclose()


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(503))

        with pytest.raises(TransientTransportError) as exc_info:
            await api.ingest([])
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, client_config, api_requests):
        api = make_api(
            client_config,
            api_requests,
            lambda r: httpx.Response(429, headers={"Retry-After": "3"}),
        )

        with pytest.raises(TransientTransportError) as exc_info:
            await api.ingest([])
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_seconds == 3.0

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, client_config, api_requests):
        api = make_api(
            client_config, api_requests, lambda r: httpx.Response(400, text="bad batch")
        )

        with pytest.raises(PermanentTransportError) as exc_info:
            await api.ingest([])
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_connect_error_is_transient(self, client_config, api_requests):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        api = make_api(client_config, api_requests, refuse)

        with pytest.raises(TransientTransportError):
            await api.ingest([])

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client_config, api_requests):
        def time_out(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        api = make_api(client_config, api_requests, time_out)

        with pytest.raises(TransientTransportError):
            await api.ingest([])

    def test_retry_after_parsing(self):
        assert _parse_retry_after(None) is None
        assert _parse_retry_after("") is None
        assert _parse_retry_after("1.5") == 1.5
        assert _parse_retry_after("-4") == 0.0
        assert _parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
        assert _parse_retry_after("soon") is None


class TestPrompts:
    @pytest.mark.asyncio
    async def test_get_text_prompt(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=TEXT_PROMPT))

        model = await api.get_prompt("greeting", label="production")

        assert isinstance(model, TextPromptModel)
        assert model.version == 3
        assert model.config == {"temperature": 0.2}
        request = api_requests[0]
        assert request.url.path == "/api/public/v2/prompts/greeting"
        assert request.url.params["label"] == "production"
        assert "version" not in request.url.params

    @pytest.mark.asyncio
    async def test_get_chat_prompt(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=CHAT_PROMPT))

        model = await api.get_prompt("critic", version=1)

        assert isinstance(model, ChatPromptModel)
        assert [m.role for m in model.prompt] == ["system", "user"]
        assert api_requests[0].url.params["version"] == "1"

    @pytest.mark.asyncio
    async def test_name_is_url_encoded(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=TEXT_PROMPT))

        await api.get_prompt("folder/greeting")

        assert b"/prompts/folder%2Fgreeting" in api_requests[0].url.raw_path

    @pytest.mark.asyncio
    async def test_missing_prompt(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(404))

        with pytest.raises(ResourceNotFound):
            await api.get_prompt("missing")

    @pytest.mark.asyncio
    async def test_unavailable_backend(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(500))

        with pytest.raises(FetchUnavailable):
            await api.get_prompt("greeting")

    @pytest.mark.asyncio
    async def test_auth_failure_propagates(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(401))

        with pytest.raises(PermanentTransportError):
            await api.get_prompt("greeting")

    @pytest.mark.asyncio
    async def test_update_labels(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=TEXT_PROMPT))

        await api.update_prompt_labels("greeting", 3, ["production"])

        request = api_requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/api/public/v2/prompts/greeting/versions/3"


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_sends_ingestion_envelope(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(207, json={
            "successes": [{"id": "a", "status": 201}],
            "errors": [],
        }))
        event = Event.create(EventType.SCORE_CREATE, {"name": "quality", "value": 1}, id="a")

        ack = await HttpTransport(api).send([event])

        assert ack.successes == ["a"]
        body = api_requests[0].read()
        assert b'"type":"score-create"' in body.replace(b" ", b"")
        assert api_requests[0].url.path == "/api/public/ingestion"

    @pytest.mark.asyncio
    async def test_partial_rejection(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(207, json={
            "successes": [{"id": "a", "status": 201}],
            "errors": [{"id": "b", "status": 400, "message": "invalid value"}],
        }))
        events = [
            Event.create(EventType.SCORE_CREATE, {"value": 1}, id="a"),
            Event.create(EventType.SCORE_CREATE, {"value": "x"}, id="b"),
        ]

        ack = await HttpTransport(api).send(events)

        assert ack.successes == ["a"]
        assert len(ack.errors) == 1
        assert ack.errors[0].event_id == "b"
        assert ack.errors[0].status == 400
        assert ack.errors[0].message == "invalid value"

    @pytest.mark.asyncio
    async def test_empty_response_body(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(204))

        ack = await HttpTransport(api).send([])

        assert ack.successes == []
        assert ack.errors == []


class TestReadApi:
    @pytest.mark.asyncio
    async def test_get_trace(self, client_config, api_requests):
        trace = {"id": "trace-1", "name": "chat", "observations": [], "scores": []}
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=trace))

        assert await api.get_trace("trace-1") == trace
        assert api_requests[0].url.path == "/api/public/traces/trace-1"

    @pytest.mark.asyncio
    async def test_missing_trace(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(404))

        with pytest.raises(ResourceNotFound):
            await api.get_trace("nope")

    @pytest.mark.asyncio
    async def test_list_traces_filters(self, client_config, api_requests):
        page = {"data": [{"id": "trace-1"}], "meta": {"page": 2, "totalItems": 11}}
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=page))

        result = await api.list_traces(
            page=2,
            limit=10,
            user_id="user-1",
            tags=["prod", "beta"],
            from_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        assert result == page
        params = api_requests[0].url.params
        assert params["page"] == "2"
        assert params["limit"] == "10"
        assert params["userId"] == "user-1"
        assert params.get_list("tags") == ["prod", "beta"]
        assert params["fromTimestamp"] == "2024-01-01T00:00:00+00:00"
        assert "sessionId" not in params

    @pytest.mark.asyncio
    async def test_get_observation(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json={"id": "obs-1"}))

        assert (await api.get_observation("obs-1"))["id"] == "obs-1"
        assert api_requests[0].url.path == "/api/public/observations/obs-1"

    @pytest.mark.asyncio
    async def test_list_observations_filters(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json={"data": [], "meta": {}}))

        await api.list_observations(trace_id="trace-1", type="GENERATION")

        request = api_requests[0]
        assert request.url.path == "/api/public/observations"
        assert request.url.params["traceId"] == "trace-1"
        assert request.url.params["type"] == "GENERATION"

    @pytest.mark.asyncio
    async def test_get_session(self, client_config, api_requests):
        session = {"id": "session-1", "traces": []}
        api = make_api(client_config, api_requests, lambda r: httpx.Response(200, json=session))

        assert await api.get_session("session-1") == session
        assert api_requests[0].url.path == "/api/public/sessions/session-1"

    @pytest.mark.asyncio
    async def test_read_errors_are_mapped(self, client_config, api_requests):
        api = make_api(client_config, api_requests, lambda r: httpx.Response(502))

        with pytest.raises(TransientTransportError):
            await api.list_traces()
