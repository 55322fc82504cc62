from __future__ import annotations

import logging
import threading
import zlib
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ._json import JSONDecodeError, dumps, loads

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7331

CONTINUATION = (
    "man to walk on the moon was Neil Armstrong , who stepped onto the surface "
    "in July 1969 and said that it was one small step for a man"
).split()
VOCAB_SIZE = 50257

# (status, content type, body)
Reply = Tuple[int, str, bytes]
Route = Union[Reply, Callable[[bytes], Reply]]


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        return loads(self.body)


# --- Fake generation ------------------------------------------------------

def _token_id(word: str) -> int:
    return zlib.crc32(word.encode("utf-8")) % VOCAB_SIZE


def fake_generate(seed_text: str, max_tokens: int) -> List[Dict[str, Any]]:
    """Deterministic token data in the server's shape: [{str, id, logits: [{id, logit}]}]."""
    offset = len(seed_text.split()) % len(CONTINUATION)
    tokens = []
    for i in range(max(0, int(max_tokens))):
        word = CONTINUATION[(offset + i) % len(CONTINUATION)]
        tid = _token_id(word)
        alt = _token_id(word.upper())
        tokens.append(
            {
                "str": " " + word,
                "id": tid,
                "logits": [{"id": tid, "logit": 12.5}, {"id": alt, "logit": 7.25}],
            }
        )
    return tokens


def _completion_reply(token_data: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"text": "".join(t["str"] for t in token_data), "tokenData": token_data}


def _match_ratio(expected: List[Dict[str, Any]], response: Any) -> float:
    got = response.get("tokenData") if isinstance(response, dict) else None
    if not isinstance(got, list) or not expected:
        return 0.0
    same = sum(
        1
        for e, g in zip(expected, got)
        if isinstance(g, dict) and g.get("id") == e["id"]
    )
    return same / max(len(expected), len(got))


def _chat_seed(request: Dict[str, Any]) -> str:
    messages = request.get("messages") or []
    return str(messages[-1].get("content", "")) if messages else ""


# --- HTTP handler ---------------------------------------------------------

class Handler(BaseHTTPRequestHandler):
    server_version = "BlamaMock/1.0"
    protocol_version = "HTTP/1.1"

    @property
    def mock(self) -> "MockInferenceServer":
        return self.server.mock  # type: ignore[attr-defined]

    # --- Utilities ---------------------------------------------------------

    def _send(self, code: int, content_type: str, body: bytes) -> None:
        self.send_response(code)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Connection", "close")
        self.end_headers()
        if body:
            self.wfile.write(body)
        self.close_connection = True

    def _send_json(self, code: int, payload: Any) -> None:
        self._send(code, "text/json", dumps(payload))

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length > 0 else b""

    # --- Routes ------------------------------------------------------------

    def do_GET(self) -> None:
        self.mock.record(RecordedRequest("GET", self.path, dict(self.headers.items())))
        self._send(400, "", b"")

    def do_POST(self) -> None:
        body = self._read_body()
        path = self.path.split("?", 1)[0]
        self.mock.record(RecordedRequest("POST", path, dict(self.headers.items()), body))

        override = self.mock.routes.get(path)
        if override is not None:
            code, ctype, out = override(body) if callable(override) else override
            return self._send(code, ctype, out)

        handler = {
            "/complete": self._complete,
            "/verify_completion": self._verify,
            "/chat/completions": self._chat_complete,
            "/chat/verify_completion": self._chat_verify,
        }.get(path)
        if handler is None:
            return self._send(404, "", b"")

        try:
            data = loads(body)
        except JSONDecodeError:
            return self._send_json(400, {"error": "malformed json"})
        if not isinstance(data, dict):
            return self._send_json(400, {"error": "expected an object"})
        try:
            self._send_json(200, handler(data))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self._send_json(400, {"error": f"bad request: {e}"})

    def _complete(self, data: Dict[str, Any]) -> Dict[str, Any]:
        prompt = data["prompt"]
        return _completion_reply(fake_generate(prompt, data.get("max_tokens", 0)))

    def _verify(self, data: Dict[str, Any]) -> Dict[str, Any]:
        req = data["request"]
        expected = fake_generate(req["prompt"], req.get("max_tokens", 0))
        return {"result": _match_ratio(expected, data.get("response"))}

    def _chat_complete(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return _completion_reply(fake_generate(_chat_seed(data), data.get("max_tokens", 0)))

    def _chat_verify(self, data: Dict[str, Any]) -> Dict[str, Any]:
        req = data["request"]
        expected = fake_generate(_chat_seed(req), req.get("max_tokens", 0))
        return {"result": _match_ratio(expected, data.get("response"))}

    def log_message(self, fmt: str, *args) -> None:
        log.debug("%s - %s", self.address_string(), fmt % args)


# --- Server ---------------------------------------------------------------

class MockInferenceServer:
    """
    Stand-in for the inference server, served from a background thread.

    `routes` maps a path to a fixed reply or to a callable taking the raw request body;
    overridden paths skip the built-in handlers. Every request is kept in `requests`.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = 0,
        routes: Optional[Dict[str, Route]] = None,
    ):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[RecordedRequest] = []
        self._lock = threading.Lock()
        self._httpd = ThreadingHTTPServer((host, port), Handler)
        self._httpd.mock = self  # type: ignore[attr-defined]
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"

    def record(self, req: RecordedRequest) -> None:
        with self._lock:
            self.requests.append(req)

    def requests_to(self, path: str) -> List[RecordedRequest]:
        with self._lock:
            return [r for r in self.requests if r.path == path]

    def start(self) -> "MockInferenceServer":
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()
        log.info("Mock inference server listening on %s", self.base_url)
        return self

    def serve_forever(self) -> None:
        self._httpd.serve_forever()

    def stop(self) -> None:
        if self._thread is not None:
            self._httpd.shutdown()
            self._thread.join()
            self._thread = None
        self._httpd.server_close()

    def __enter__(self) -> "MockInferenceServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def json_reply(payload: Any, status: int = 200) -> Reply:
    return status, "text/json", dumps(payload)


def text_reply(text: str, status: int = 200) -> Reply:
    return status, "text/plain; charset=utf-8", text.encode("utf-8")
