from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from .. import __version__
from .._json import dumps
from ..errors import NetworkError
from ..models import (
    DEFAULT_BASE_URL,
    ChatCompletionRequest,
    ChatVerificationRequest,
    CompletionRequest,
    ProbeResponse,
    VerificationRequest,
)

log = logging.getLogger(__name__)

COMPLETE_PATH = "/complete"
VERIFY_PATH = "/verify_completion"
CHAT_COMPLETE_PATH = "/chat/completions"
CHAT_VERIFY_PATH = "/chat/verify_completion"

# The server answers with "text/json" and expects the same on requests.
CONTENT_TYPE = "text/json"


def _timeout(timeout_s: Optional[float]) -> httpx.Timeout:
    # None disables every phase; a completion may take as long as the model needs.
    return httpx.Timeout(timeout_s)


def _status_line(resp: httpx.Response) -> str:
    return f"{resp.http_version} {resp.status_code} {resp.reason_phrase}".rstrip()


class ProbeClient:
    """
    Blocking client for the inference server's completion API.

    Every call opens its own httpx.Client and closes it before returning, so no
    connection outlives a single request. Nothing is retried and the HTTP status
    is never checked: the caller gets whatever the server sent.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout_s: Optional[float] = None,
        user_agent: str = f"blama-probe/{__version__}",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.user_agent = user_agent

    def url_for(self, path: str) -> str:
        return self.base_url + path

    # -----------------------------
    # Completion
    # -----------------------------

    def complete(self, request: CompletionRequest) -> ProbeResponse:
        return self.post_json(COMPLETE_PATH, request.payload())

    def verify(self, request: CompletionRequest, parsed_response: Any) -> ProbeResponse:
        body = VerificationRequest(request=request, response=parsed_response)
        return self.post_json(VERIFY_PATH, body.payload())

    # -----------------------------
    # Chat
    # -----------------------------

    def chat_complete(self, request: ChatCompletionRequest) -> ProbeResponse:
        return self.post_json(CHAT_COMPLETE_PATH, request.payload())

    def chat_verify(self, request: ChatCompletionRequest, parsed_response: Any) -> ProbeResponse:
        body = ChatVerificationRequest(request=request, response=parsed_response)
        return self.post_json(CHAT_VERIFY_PATH, body.payload())

    # -----------------------------
    # Transport
    # -----------------------------

    def post_json(self, path: str, payload: Dict[str, Any]) -> ProbeResponse:
        url = self.url_for(path)
        content = dumps(payload)
        headers = {"Content-Type": CONTENT_TYPE, "User-Agent": self.user_agent}

        log.debug("POST %s (%d bytes)", url, len(content))
        start_ns = time.perf_counter_ns()
        try:
            with httpx.Client(timeout=_timeout(self.timeout_s)) as client:
                resp = client.post(url, content=content, headers=headers)
        except httpx.RequestError as e:
            # Covers refused connections, DNS failures, resets and timeouts.
            log.debug("POST %s failed: %r", url, e)
            raise NetworkError(url, str(e) or type(e).__name__) from e
        elapsed_ms = (time.perf_counter_ns() - start_ns) / 1e6

        log.debug("POST %s -> %s in %.1f ms", url, resp.status_code, elapsed_ms)
        return ProbeResponse(
            url=url,
            status_line=_status_line(resp),
            status_code=resp.status_code,
            headers=dict(resp.headers.items()),
            body=resp.text,
            content=resp.content,
            elapsed_ms=elapsed_ms,
        )


# -----------------------------
# Module-level shortcuts
# -----------------------------

def complete(base_url: str, prompt: str, max_tokens: int, **options: Any) -> ProbeResponse:
    """POST `{prompt, max_tokens}` (plus any sampling options) to `base_url/complete`."""
    request = CompletionRequest(prompt=prompt, max_tokens=max_tokens, **options)
    return ProbeClient(base_url).complete(request)


def verify(base_url: str, request: CompletionRequest, parsed_response: Any) -> ProbeResponse:
    """POST `{request, response}` to `base_url/verify_completion`."""
    return ProbeClient(base_url).verify(request, parsed_response)

