from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._json import JSONDecodeError, loads
from .errors import DecodeError

DEFAULT_BASE_URL = "http://localhost:7331"
DEFAULT_PROMPT = "The first man to"
DEFAULT_MAX_TOKENS = 20

ChatRole = Literal["system", "user", "assistant"]


# ------------------------------------------------------------------
# Wire requests
# ------------------------------------------------------------------

class CompletionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    seed: Optional[int] = Field(default=None, description="Sampler seed.")
    suffix: Optional[str] = Field(default=None, description="Text that must follow the completion.")
    temp: Optional[float] = Field(default=None, ge=0.0, description="Sampling temperature.")
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)

    def payload(self) -> Dict[str, Any]:
        # Unset sampling options are left out so the server applies its own defaults.
        return self.model_dump(exclude_none=True)


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str

    @classmethod
    def parse(cls, spec: str) -> "ChatMessage":
        """Build a message from ``role:content`` (``user`` when no known role prefix)."""
        role, sep, content = spec.partition(":")
        role = role.strip().lower()
        if not sep or role not in ("system", "user", "assistant"):
            return cls(role="user", content=spec)
        return cls(role=role, content=content.lstrip())


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    messages: List[ChatMessage] = Field(min_length=1)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    seed: Optional[int] = None
    temp: Optional[float] = Field(default=None, ge=0.0)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class VerificationRequest(BaseModel):
    """A completion request together with the decoded response it produced."""

    model_config = ConfigDict(frozen=True)

    request: CompletionRequest
    response: Any

    def payload(self) -> Dict[str, Any]:
        # The response is forwarded exactly as decoded; no exclude_none on it.
        return {"request": self.request.payload(), "response": self.response}


class ChatVerificationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: ChatCompletionRequest
    response: Any

    def payload(self) -> Dict[str, Any]:
        return {"request": self.request.payload(), "response": self.response}


# ------------------------------------------------------------------
# Raw responses
# ------------------------------------------------------------------

class ProbeResponse(BaseModel):
    url: str
    status_line: str
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    content: bytes = b""
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json_body(self) -> Any:
        """Decode the body as JSON or raise DecodeError."""
        try:
            return loads(self.content)
        except JSONDecodeError as e:
            raise DecodeError(f"Response from {self.url} is not valid JSON: {e}", self.body) from e

    def snapshot(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status_line": self.status_line,
            "status": self.status_code,
            "headers": self.headers,
            "body": self.body,
            "elapsed_ms": self.elapsed_ms,
        }


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------

class ProbeSettings(BaseModel):
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Inference server root URL.")
    timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-request timeout in seconds; unset waits as long as the server takes.",
    )
    prompt: str = DEFAULT_PROMPT
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    verify: bool = Field(default=True, description="Forward the completion to the verify endpoint.")
    seed: Optional[int] = None
    suffix: Optional[str] = None
    temp: Optional[float] = Field(default=None, ge=0.0)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)

    @field_validator("base_url", mode="before")
    @classmethod
    def _norm_base_url(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise TypeError("base_url must be a string")
        url = v.strip().rstrip("/")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"base_url must be an absolute http(s) URL: {v!r}")
        return url

    def completion_request(self, prompt: Optional[str] = None, **overrides: Any) -> CompletionRequest:
        params = {
            "prompt": self.prompt if prompt is None else prompt,
            "max_tokens": self.max_tokens,
            "seed": self.seed,
            "suffix": self.suffix,
            "temp": self.temp,
            "top_p": self.top_p,
        }
        params.update({k: v for k, v in overrides.items() if v is not None})
        return CompletionRequest(**params)
