from __future__ import annotations

import pytest
from pydantic import ValidationError

from blama_probe.errors import DecodeError
from blama_probe.models import (
    ChatMessage,
    CompletionRequest,
    ProbeResponse,
    ProbeSettings,
    VerificationRequest,
)


def test_completion_payload_omits_unset_options():
    req = CompletionRequest(prompt="The first man to", max_tokens=20)
    assert req.payload() == {"prompt": "The first man to", "max_tokens": 20}
    assert list(req.payload()) == ["prompt", "max_tokens"]


def test_completion_request_is_immutable():
    req = CompletionRequest(prompt="a", max_tokens=1)
    with pytest.raises(ValidationError):
        req.prompt = "b"


def test_completion_request_rejects_non_positive_max_tokens():
    with pytest.raises(ValidationError):
        CompletionRequest(prompt="a", max_tokens=0)


def test_verification_payload_keeps_nulls_inside_response():
    req = CompletionRequest(prompt="a", max_tokens=2)
    body = VerificationRequest(request=req, response={"text": None, "tokenData": []})
    assert body.payload() == {
        "request": {"prompt": "a", "max_tokens": 2},
        "response": {"text": None, "tokenData": []},
    }


def test_chat_message_parse():
    assert ChatMessage.parse("system: Be brief.") == ChatMessage(role="system", content="Be brief.")
    assert ChatMessage.parse("hello") == ChatMessage(role="user", content="hello")
    # unknown prefixes stay part of the content
    assert ChatMessage.parse("note: hi") == ChatMessage(role="user", content="note: hi")


def test_json_body_decodes_or_raises():
    ok = ProbeResponse(url="u", status_line="HTTP/1.1 200 OK", status_code=200, body="[1]", content=b"[1]")
    assert ok.json_body() == [1]

    bad = ProbeResponse(url="u", status_line="HTTP/1.1 200 OK", status_code=200, body="nope", content=b"nope")
    with pytest.raises(DecodeError):
        bad.json_body()

    empty = ProbeResponse(url="u", status_line="HTTP/1.1 204 No Content", status_code=204)
    with pytest.raises(DecodeError):
        empty.json_body()


def test_settings_defaults_and_base_url_normalization():
    s = ProbeSettings()
    assert s.base_url == "http://localhost:7331"
    assert s.timeout_s is None
    assert s.completion_request().payload() == {"prompt": "The first man to", "max_tokens": 20}

    assert ProbeSettings(base_url=" http://127.0.0.1:9000/ ").base_url == "http://127.0.0.1:9000"


@pytest.mark.parametrize("url", ["localhost:7331", "ftp://host", "http://", ""])
def test_settings_reject_bad_base_url(url):
    with pytest.raises(ValidationError):
        ProbeSettings(base_url=url)


def test_settings_completion_request_overrides():
    s = ProbeSettings(max_tokens=5, seed=1)
    req = s.completion_request("Once", max_tokens=7, temp=None)
    assert req.payload() == {"prompt": "Once", "max_tokens": 7, "seed": 1}
