from __future__ import annotations


class ProbeError(Exception):
    """Base error for probe failures."""


class NetworkError(ProbeError):
    """The request could not be sent or its response could not be read."""

    def __init__(self, url: str, message: str):
        super().__init__(f"POST {url} failed: {message}")
        self.url = url


class DecodeError(ProbeError):
    """A response body that must be JSON is not."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body
