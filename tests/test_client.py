"""Tests for the Ollama client (no live model required)."""

from __future__ import annotations

import json
import threading
import time
from unittest.mock import patch

import httpx
import pytest

from thunderclerk.errors import ActionCancelled, EmptyResult, InvalidHost, ModelTimeout, UpstreamError
from thunderclerk.extraction.client import OllamaClient, generate, is_valid_host_url, validate_host


def _ok(text: str) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"response": text}))


class TestHostValidation:
    @pytest.mark.parametrize(
        "host", ["http://127.0.0.1:11434", "https://example.com", "http://localhost:11434/"]
    )
    def test_accepts_http_and_https(self, host: str) -> None:
        assert is_valid_host_url(host)

    @pytest.mark.parametrize("host", ["ftp://x", "file:///x", "not a url", "", "127.0.0.1:11434"])
    def test_rejects_everything_else(self, host: str) -> None:
        assert not is_valid_host_url(host)

    def test_generate_url(self) -> None:
        assert validate_host("http://127.0.0.1:11434/") == "http://127.0.0.1:11434/api/generate"

    def test_invalid_host_message(self) -> None:
        with pytest.raises(InvalidHost, match='Invalid Ollama host URL: "ftp://x"'):
            validate_host("ftp://x")


class TestGenerate:
    def test_request_payload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"response": '{"summary": "x"}'})

        client = OllamaClient(
            "http://127.0.0.1:11434", "mistral:7b", transport=httpx.MockTransport(handler)
        )
        assert client.generate("hello", options={"num_ctx": 16384}) == '{"summary": "x"}'

        assert len(seen) == 1
        assert seen[0].url == "http://127.0.0.1:11434/api/generate"
        body = json.loads(seen[0].content)
        assert body == {
            "model": "mistral:7b",
            "prompt": "hello",
            "stream": False,
            "options": {"num_ctx": 16384},
        }

    def test_no_options_key_by_default(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"response": "{}"})

        OllamaClient("http://h:1", "m", transport=httpx.MockTransport(handler)).generate("p")
        assert "options" not in seen[0]

    def test_non_success_status(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="model not found"))
        client = OllamaClient("http://127.0.0.1:11434", "missing", transport=transport)
        with pytest.raises(UpstreamError) as exc_info:
            client.generate("p")
        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP 404: model not found"

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = OllamaClient("http://127.0.0.1:11434", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(ModelTimeout) as exc_info:
            client.generate("p", timeout=5)
        assert exc_info.value.seconds == 5

    def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = OllamaClient("http://127.0.0.1:11434", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamError) as exc_info:
            client.generate("p")
        assert exc_info.value.status_code == 0

    def test_empty_response(self) -> None:
        client = OllamaClient("http://127.0.0.1:11434", "m", transport=_ok("   "))
        with pytest.raises(EmptyResult):
            client.generate("p")

    def test_non_json_body(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = OllamaClient("http://127.0.0.1:11434", "m", transport=transport)
        with pytest.raises(UpstreamError):
            client.generate("p")

    def test_invalid_host_never_calls_transport(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"response": "{}"})

        client = OllamaClient("file:///etc/passwd", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(InvalidHost):
            client.generate("p")
        assert calls == []

    def test_cancelled_before_call(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"response": "{}"})

        cancel = threading.Event()
        cancel.set()
        client = OllamaClient("http://h:1", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(ActionCancelled):
            client.generate("p", cancel=cancel)
        assert calls == []

    def test_cancelled_while_waiting_discards_result(self) -> None:
        cancel = threading.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            cancel.set()
            return httpx.Response(200, json={"response": '{"summary": "late"}'})

        client = OllamaClient("http://h:1", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(ActionCancelled):
            client.generate("p", cancel=cancel)

    def test_cancel_ends_wait_on_in_flight_call(self) -> None:
        cancel = threading.Event()
        release = threading.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            release.wait(5)
            return httpx.Response(200, json={"response": '{"summary": "late"}'})

        client = OllamaClient("http://h:1", "m", transport=httpx.MockTransport(handler))
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        started = time.monotonic()
        try:
            with pytest.raises(ActionCancelled):
                client.generate("p", timeout=300, cancel=cancel)
            assert time.monotonic() - started < 1.5
        finally:
            release.set()
            timer.cancel()

    def test_timeout_with_cancel_event(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = OllamaClient("http://h:1", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(ModelTimeout):
            client.generate("p", timeout=5, cancel=threading.Event())


class TestModuleGenerate:
    def test_invalid_host(self) -> None:
        with pytest.raises(InvalidHost):
            generate("ftp://x", "m", "p")

    def test_delegates_to_client(self) -> None:
        with patch.object(OllamaClient, "generate", return_value='{"a": 1}') as mock_generate:
            assert generate("http://127.0.0.1:11434", "m", "prompt", timeout=5) == '{"a": 1}'
        mock_generate.assert_called_once_with("prompt")
