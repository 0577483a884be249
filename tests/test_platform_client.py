"""Tests for the platform HTTP client and the collaborators built on it.

Requests are served by ``httpx.MockTransport``; nothing leaves the process.
"""

import json

import httpx
import pytest

from fakes import make_thread

from parley.config import PlatformConfig
from parley.llm.settings_service import HttpSettingsProvider
from parley.multi.messages import BotToBotEnvelope, HandoffEnvelope, OutboundMessage
from parley.multi.transport import HttpTransport
from parley.platform_client import PlatformClient
from parley.system.history import HttpMessageStore
from parley.utils.errors import TransportError

BASE_URL = "https://platform.example.com"


class Recorder:
    def __init__(self, responder):
        self.requests = []
        self.responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def _client(responder):
    recorder = Recorder(responder)
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(recorder))
    return PlatformClient(BASE_URL, client=http), recorder


class TestPlatformClient:
    def test_requires_base_url(self):
        with pytest.raises(TransportError):
            PlatformClient("")

    def test_from_config_without_url(self):
        with pytest.raises(TransportError):
            PlatformClient.from_config(PlatformConfig())

    @pytest.mark.asyncio
    async def test_get_json_drops_empty_params(self):
        client, recorder = _client(lambda r: httpx.Response(200, json={"ok": True}))

        result = await client.get_json("api/ping", params={"a": "1", "b": None})

        assert result == {"ok": True}
        assert dict(recorder.requests[0].url.params) == {"a": "1"}

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self):
        client, _ = _client(lambda r: httpx.Response(204))

        assert await client.post_json("api/ping", {"x": 1}) is None

    @pytest.mark.asyncio
    async def test_plain_text_body(self):
        client, _ = _client(lambda r: httpx.Response(200, text="accepted"))

        assert await client.post_json("api/ping") == "accepted"

    @pytest.mark.asyncio
    async def test_http_error_becomes_transport_error(self):
        client, _ = _client(lambda r: httpx.Response(503, text="unavailable"))

        with pytest.raises(TransportError) as exc_info:
            await client.get_json("api/ping")

        assert exc_info.value.details["status_code"] == 503
        assert exc_info.value.recoverable is True
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_connection_error_becomes_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = _client(refuse)

        with pytest.raises(TransportError):
            await client.get_json("api/ping")

    @pytest.mark.asyncio
    async def test_bearer_header(self):
        async with PlatformClient(BASE_URL, api_key="platform-key") as client:
            assert client._client.headers["Authorization"] == "Bearer platform-key"
            assert str(client._client.base_url).rstrip("/") == BASE_URL


class TestHttpSettingsProvider:
    @pytest.mark.asyncio
    async def test_cached_after_first_success(self):
        payload = {"apiKey": "sk", "providerName": "openai", "modelName": "gpt-4o", "additionalConfig": {}}
        client, recorder = _client(lambda r: httpx.Response(200, json=payload))
        provider = HttpSettingsProvider(client)

        first = await provider.get_settings()
        second = await provider.get_settings()

        assert first is second
        assert first.provider_name == "openai"
        assert len(recorder.requests) == 1
        assert recorder.requests[0].url.path == "/api/agent/settings/flowserver"

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        responses = [httpx.Response(500), httpx.Response(200, json={"modelName": "gpt-4o"})]
        client, recorder = _client(lambda r: responses.pop(0))
        provider = HttpSettingsProvider(client)

        with pytest.raises(TransportError):
            await provider.get_settings()
        settings = await provider.get_settings()

        assert settings.model_name == "gpt-4o"
        assert len(recorder.requests) == 2


class TestHttpMessageStore:
    @pytest.mark.asyncio
    async def test_fetch_history(self):
        payload = [
            {"id": "2", "direction": "Outgoing", "text": "Hi, how can I help?", "threadId": "thread-1"},
            {"id": "1", "direction": "Incoming", "text": "Hello", "threadId": "thread-1"},
        ]
        client, recorder = _client(lambda r: httpx.Response(200, json=payload))
        store = HttpMessageStore(client)

        messages = await store.fetch_history(make_thread(), 1, 10)

        assert [m.id for m in messages] == ["2", "1"]
        assert messages[0].is_outgoing
        params = dict(recorder.requests[0].url.params)
        assert params["workflowType"] == "Travel Agent:Chat Flow"
        assert params["participantId"] == "user-42"
        assert params["pageSize"] == "10"
        assert params["scope"] == "support"

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"error": "nope"}))

        with pytest.raises(TransportError):
            await HttpMessageStore(client).fetch_history(make_thread(), 1, 10)


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_send_posts_to_type_path(self):
        client, recorder = _client(lambda r: httpx.Response(200, text="msg-1"))
        message = OutboundMessage(
            participant_id="user-42", workflow_id="default:A:F", workflow_type="A:F", text="Hello"
        )

        ack = await HttpTransport(client).send(message)

        assert ack == "msg-1"
        request = recorder.requests[0]
        assert request.url.path == "/api/agent/conversation/outbound/chat"
        body = json.loads(request.content)
        assert body["participantId"] == "user-42"
        assert body["type"] == "Chat"
        assert "data" not in body

    @pytest.mark.asyncio
    async def test_handoff(self):
        client, recorder = _client(lambda r: httpx.Response(200, text="ok"))
        envelope = HandoffEnvelope(
            source_agent="A",
            source_workflow_type="A:F",
            source_workflow_id="default:A:F",
            thread_id="thread-1",
            participant_id="user-42",
            text="Please take over",
            target_workflow_type="B:F",
        )

        await HttpTransport(client).handoff(envelope)

        request = recorder.requests[0]
        assert request.url.path == "/api/agent/conversation/outbound/handoff"
        body = json.loads(request.content)
        assert body["targetWorkflowType"] == "B:F"
        assert body["type"] == "Handoff"

    @pytest.mark.asyncio
    async def test_converse(self):
        client, recorder = _client(lambda r: httpx.Response(200, json={"response": {"text": "pong", "threadId": "t"}}))
        envelope = BotToBotEnvelope(target_workflow_id="default:B:F", target_workflow_type="B:F", text="ping")

        response = await HttpTransport(client).converse(envelope, 45)

        assert response.text == "pong"
        assert response.thread_id == "t"
        params = dict(recorder.requests[0].url.params)
        assert params == {"type": "Chat", "timeoutSeconds": "45"}

    @pytest.mark.asyncio
    async def test_converse_without_response(self):
        client, _ = _client(lambda r: httpx.Response(200, json={}))
        envelope = BotToBotEnvelope(target_workflow_id="default:B:F", target_workflow_type="B:F", text="ping")

        with pytest.raises(TransportError):
            await HttpTransport(client).converse(envelope, 45)
