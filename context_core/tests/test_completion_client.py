"""测试 chat-completion 客户端（非流式 / 流式）。"""

import json

import httpx

from context_core.domain.exceptions import NetworkError
from context_core.domain.models import ChatMessage
from context_core.providers import create_completion_client
from context_core.providers.completion_client import CompletionClient


class SettingsStub:
    llm_base_url = "http://llm.test/"
    llm_model = "qwen:7b"
    llm_api_key = "k"
    connect_timeout = 1.0
    write_timeout = 1.0
    read_timeout = 1.0


class NoKeySettings(SettingsStub):
    llm_api_key = None


MESSAGES = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")]


class Resp:
    def __init__(self, status_code=200, text="", reason_phrase="OK"):
        self.status_code = status_code
        self.text = text
        self.reason_phrase = reason_phrase


class FakeResponse:
    def __init__(self, lines, status_code=200, reason_phrase="OK", error=None):
        self._lines = list(lines)
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self._error = error

    def iter_lines(self):
        if self.status_code != 200:
            raise AssertionError("body must not be read on HTTP error")
        for line in self._lines:
            yield line
        if self._error is not None:
            raise self._error


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def _install(monkeypatch, post=None, stream=None, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            self.closed = 0

        def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured.update(url=url, payload=json, headers=headers)
            if isinstance(post, Exception):
                raise post
            return post

        def stream(self, method, url, json=None, headers=None, **_):
            if captured is not None:
                captured.update(method=method, url=url, payload=json, headers=headers)
            return StreamContext(stream)

        def close(self):
            self.closed += 1

    monkeypatch.setattr("httpx.Client", Client)


def _body(content):
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})


def _frame(content):
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": content}}]})


def test_complete_buffered_payload_and_result(monkeypatch):
    captured = {}
    _install(monkeypatch, post=Resp(text=_body("Hello, world")), captured=captured)

    text = CompletionClient(SettingsStub()).complete(MESSAGES)

    assert text == "Hello, world"
    assert captured["url"] == "http://llm.test/v1/chat/completions"
    assert captured["payload"] == {
        "model": "qwen:7b",
        "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
        "temperature": 0.2,
        "stream": False,
    }
    assert captured["headers"]["Authorization"] == "Bearer k"


def test_no_api_key_sends_no_auth_header(monkeypatch):
    captured = {}
    _install(monkeypatch, post=Resp(text=_body("ok")), captured=captured)

    CompletionClient(NoKeySettings()).complete(MESSAGES)

    assert "Authorization" not in captured["headers"]


def test_stream_matches_buffered_result(monkeypatch):
    lines = [_frame("Hel"), "", _frame("lo, "), _frame("world"), "data: [DONE]"]
    captured = {}
    _install(monkeypatch, post=Resp(text=_body("Hello, world")), stream=FakeResponse(lines), captured=captured)
    client = CompletionClient(SettingsStub())

    chunks = []
    streamed = client.complete(MESSAGES, on_chunk=chunks.append)

    assert chunks == ["Hel", "lo, ", "world"]
    assert captured["method"] == "POST"
    assert captured["payload"]["stream"] is True
    assert streamed == "".join(chunks) == client.complete(MESSAGES)


def test_stream_skips_malformed_and_empty_frames(monkeypatch):
    lines = [
        _frame("a"),
        "data: {not json",
        'data: {"choices": []}',
        _frame(""),
        ": keep-alive",
        _frame(" "),
        _frame("b"),
        "data: [DONE]",
        _frame("ignored after done"),
    ]
    _install(monkeypatch, stream=FakeResponse(lines))

    chunks = []
    text = CompletionClient(SettingsStub()).complete(MESSAGES, on_chunk=chunks.append)

    assert chunks == ["a", " ", "b"]
    assert text == "a b"


def test_stream_http_error_does_not_read_body(monkeypatch):
    _install(monkeypatch, stream=FakeResponse([_frame("x")], status_code=500, reason_phrase="Internal Server Error"))

    chunks = []
    text = CompletionClient(SettingsStub()).complete(MESSAGES, on_chunk=chunks.append)

    assert text == "Error: HTTP 500 - Internal Server Error"
    assert chunks == []


def test_stream_network_error_keeps_partial_text(monkeypatch):
    fake = FakeResponse([_frame("Hel")], error=httpx.ReadError("connection reset"))
    _install(monkeypatch, stream=fake)

    chunks = []
    result = CompletionClient(SettingsStub()).complete_result(MESSAGES, on_chunk=chunks.append)

    assert result.ok is False
    assert result.text == "Hel"
    assert chunks == ["Hel"]
    assert isinstance(result.error, NetworkError)
    assert result.as_text() == "Network error: connection reset"


def test_buffered_sentinels(monkeypatch):
    cases = [
        (Resp(status_code=401, reason_phrase="Unauthorized"), "Error: HTTP 401 - Unauthorized"),
        (Resp(text=""), "Empty response body"),
        (Resp(text=json.dumps({"error": {"message": "bad key"}})), "API Error: bad key"),
        (Resp(text=json.dumps({"error": {}})), "API Error: Unknown error"),
        (Resp(text=json.dumps({"choices": []})), "No choices in response"),
        (Resp(text=json.dumps({"choices": [{}]})), "No message in choice"),
        (Resp(text=json.dumps({"choices": [{"message": {"role": "assistant"}}]})), "No content in message"),
        (httpx.ConnectError("refused"), "Network error: refused"),
    ]
    for outcome, expected in cases:
        _install(monkeypatch, post=outcome)
        assert CompletionClient(SettingsStub()).complete(MESSAGES) == expected


def test_buffered_invalid_json(monkeypatch):
    _install(monkeypatch, post=Resp(text="<html>oops</html>"))

    result = CompletionClient(SettingsStub()).complete_result(MESSAGES)

    assert result.ok is False
    assert result.as_text().startswith("JSON parsing error:")


def test_close_is_idempotent(monkeypatch):
    _install(monkeypatch, post=Resp(text=_body("ok")))

    with CompletionClient(SettingsStub()) as client:
        client.close()
    assert client._client.closed == 1


def test_factory_builds_client_from_settings(monkeypatch):
    _install(monkeypatch, post=Resp(text=_body("ok")))

    client = create_completion_client(SettingsStub())

    assert isinstance(client, CompletionClient)
    assert client.endpoint == "http://llm.test/v1/chat/completions"
