"""HTTP client for the Ollama-compatible generation endpoint."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

import httpx

from thunderclerk.errors import ActionCancelled, EmptyResult, InvalidHost, ModelTimeout, UpstreamError

logger = logging.getLogger(__name__)

# Default wait bound for interactive single-item actions; the analysis pass
# gets its own, longer bound from the action config.
INTERACTIVE_TIMEOUT = 60.0

ALLOWED_SCHEMES = frozenset({"http", "https"})

# How often an in-flight request checks its cancellation event, in seconds.
CANCEL_POLL_INTERVAL = 0.05


def is_valid_host_url(host: str) -> bool:
    """Return True if *host* is an absolute http(s) URL."""
    if not isinstance(host, str) or not host.strip():
        return False
    try:
        parts = urlsplit(host.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in ALLOWED_SCHEMES and bool(parts.netloc)


def validate_host(host: str) -> str:
    """Return the generate URL for *host* or raise :class:`InvalidHost`."""
    if not is_valid_host_url(host):
        raise InvalidHost(host)
    return host.strip().rstrip("/") + "/api/generate"


class OllamaClient:
    """One configured endpoint/model pair.

    The client performs exactly one request per :meth:`generate` call and
    never retries. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        host: str,
        model: str,
        timeout: float = INTERACTIVE_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def generate(
        self,
        prompt: str,
        timeout: float | None = None,
        options: Mapping[str, Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """Send *prompt* and return the model's raw ``response`` text.

        Args:
            prompt: The complete prompt.
            timeout: Override of the client's wait bound, in seconds.
            options: Ollama generation options (``num_predict``, ``num_ctx``, ...).
            cancel: When set before the call or while it runs, the result is
                discarded and :class:`ActionCancelled` is raised.

        Raises:
            InvalidHost: Bad host URL; no request is made.
            ModelTimeout: No answer within the wait bound.
            UpstreamError: Non-2xx status or connection failure.
            EmptyResult: The answer has no ``response`` text.
        """
        url = validate_host(self.host)
        if cancel is not None and cancel.is_set():
            raise ActionCancelled("Action cancelled before the model was called.")

        wait = self.timeout if timeout is None else timeout
        payload: dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if options:
            payload["options"] = dict(options)

        logger.info("Calling Ollama at %s (model=%s, prompt_len=%d)", url, self.model, len(prompt))
        try:
            response = self._post(url, payload, wait, cancel)
        except httpx.TimeoutException as exc:
            raise ModelTimeout(wait) from exc
        except httpx.TransportError as exc:
            raise UpstreamError(0, str(exc)) from exc

        if cancel is not None and cancel.is_set():
            logger.info("Discarding late Ollama response for a cancelled action")
            raise ActionCancelled("Action cancelled while waiting for the model.")

        if not response.is_success:
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(response.status_code, f"Non-JSON body: {response.text[:200]}") from exc

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise EmptyResult("The model returned an empty response.")
        logger.debug("Ollama response length: %d", len(text))
        return text

    def _post(
        self,
        url: str,
        payload: dict[str, Any],
        wait: float,
        cancel: threading.Event | None,
    ) -> httpx.Response:
        client = httpx.Client(timeout=wait, transport=self._transport)
        if cancel is None:
            with client:
                return client.post(url, json=payload)

        # Setting *cancel* ends the wait even while the worker is still blocked.
        outcome: dict[str, Any] = {}
        done = threading.Event()

        def send() -> None:
            try:
                outcome["response"] = client.post(url, json=payload)
            except Exception as exc:
                outcome["error"] = exc
            finally:
                done.set()

        threading.Thread(target=send, name="ollama-generate", daemon=True).start()
        try:
            while not done.wait(CANCEL_POLL_INTERVAL):
                if cancel.is_set():
                    logger.info("Abandoning in-flight Ollama request for a cancelled action")
                    raise ActionCancelled("Action cancelled while waiting for the model.")
        finally:
            client.close()

        if "error" in outcome:
            raise outcome["error"]
        return outcome["response"]


def generate(host: str, model: str, prompt: str, timeout: float = INTERACTIVE_TIMEOUT) -> str:
    """One call against *host* with *model*; see :meth:`OllamaClient.generate`."""
    return OllamaClient(host, model, timeout=timeout).generate(prompt)
