import json

import httpx

from commit_composer.ai.interface import extract_text
from commit_composer.ai.opencode_client import OpencodeClient, OpencodeServer
from commit_composer.config import ModelSelection
from commit_composer.errors import GenerationAuthError, GenerationError

MODEL = ModelSelection("anthropic", "claude-sonnet-4-5")
BASE_URL = "http://127.0.0.1:4096"


class FakeServer:
    """
    Minimal in-memory stand-in for the opencode session API.
    """

    def __init__(self, message_reply=None, message_status=200):
        self.message_reply = message_reply if message_reply is not None else {"parts": []}
        self.message_status = message_status
        self.requests = []
        self.deleted = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.method == "GET" and request.url.path == "/config":
            return httpx.Response(200, json={})
        if request.method == "POST" and request.url.path == "/session":
            return httpx.Response(200, json={"id": "ses_1", "title": json.loads(request.content)["title"]})
        if request.method == "POST" and request.url.path == "/session/ses_1/message":
            self.last_body = json.loads(request.content)
            return httpx.Response(self.message_status, json=self.message_reply)
        if request.method == "DELETE" and request.url.path == "/session/ses_1":
            self.deleted.append("ses_1")
            return httpx.Response(200, json=True)
        return httpx.Response(404, json={"error": "not found"})


def _client(server: FakeServer) -> OpencodeClient:
    http = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(server.handler))
    return OpencodeClient(BASE_URL, http_client=http)


def test_complete_uses_fresh_session_and_deletes_it():
    server = FakeServer({"info": {}, "parts": [{"type": "step-start"}, {"type": "text", "text": " feat: add x \n"}]})

    text = _client(server).complete("prompt", MODEL, "commit-composer-commit")

    assert text == "feat: add x"
    assert server.last_body["model"] == {"providerID": "anthropic", "modelID": "claude-sonnet-4-5"}
    assert server.last_body["parts"] == [{"type": "text", "text": "prompt"}]
    assert server.requests == [
        ("POST", "/session"),
        ("POST", "/session/ses_1/message"),
        ("DELETE", "/session/ses_1"),
    ]


def test_session_is_deleted_when_prompt_fails():
    server = FakeServer({"error": "boom"}, message_status=500)

    try:
        _client(server).complete("prompt", MODEL, "title")
    except GenerationError as exc:
        assert "HTTP 500" in str(exc)
    else:
        raise AssertionError("expected GenerationError to be raised")

    assert server.deleted == ["ses_1"]


def test_http_401_is_an_auth_error():
    server = FakeServer({"error": "unauthorized"}, message_status=401)

    try:
        _client(server).complete("prompt", MODEL, "title")
    except GenerationAuthError:
        pass
    else:
        raise AssertionError("expected GenerationAuthError to be raised")


def test_provider_auth_error_in_reply_is_an_auth_error():
    server = FakeServer({"info": {"error": {"name": "ProviderAuthError", "data": {"message": "bad key"}}}, "parts": []})

    try:
        _client(server).complete("prompt", MODEL, "title")
    except GenerationAuthError as exc:
        assert "anthropic" in str(exc)
    else:
        raise AssertionError("expected GenerationAuthError to be raised")


def test_other_provider_error_is_a_generation_error():
    server = FakeServer({"info": {"error": {"name": "APIError", "data": {"message": "overloaded"}}}, "parts": []})

    try:
        _client(server).complete("prompt", MODEL, "title")
    except GenerationAuthError:
        raise AssertionError("provider errors other than auth must not be auth errors")
    except GenerationError as exc:
        assert "overloaded" in str(exc)
    else:
        raise AssertionError("expected GenerationError to be raised")


def test_empty_reply_is_a_generation_error():
    server = FakeServer({"info": {}, "parts": [{"type": "step-finish"}]})

    try:
        _client(server).complete("prompt", MODEL, "title")
    except GenerationError as exc:
        assert "no output generated" in str(exc)
    else:
        raise AssertionError("expected GenerationError to be raised")


def test_extract_text_falls_back_to_reasoning_parts():
    parts = [
        {"type": "reasoning", "text": "fix: handle "},
        {"type": "reasoning", "reasoning": "empty input"},
        {"type": "tool", "text": "ignored"},
    ]

    assert extract_text(parts) == "fix: handle empty input"
    assert extract_text([{"type": "text", "text": "feat: x"}, {"type": "reasoning", "text": "ignored"}]) == "feat: x"


def test_unreachable_server_reports_not_connected():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(refuse))

    assert OpencodeClient(BASE_URL, http_client=http).check_connection() is False


def test_server_without_executable_raises_install_guidance(monkeypatch):
    monkeypatch.setattr("commit_composer.ai.opencode_client.OpencodeClient.check_connection", lambda self: False)
    monkeypatch.setattr("commit_composer.ai.opencode_client.shutil.which", lambda name: None)
    server = OpencodeServer(BASE_URL)

    try:
        server.start()
    except GenerationError as exc:
        assert "not installed" in str(exc)
    else:
        raise AssertionError("expected GenerationError to be raised")
    finally:
        server.close()
