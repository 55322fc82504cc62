from __future__ import annotations

import httpx

from blama_probe.mockserver import fake_generate


def test_fake_generation_is_deterministic():
    a = fake_generate("The first man to", 5)
    assert a == fake_generate("The first man to", 5)
    assert len(a) == 5
    assert {"str", "id", "logits"} <= set(a[0])


def test_complete_reply_shape(mock_server):
    r = httpx.post(mock_server.base_url + "/complete", content=b'{"prompt":"p","max_tokens":3}')
    assert r.status_code == 200
    assert r.headers["content-type"] == "text/json"
    data = r.json()
    assert data["text"] == "".join(t["str"] for t in data["tokenData"])


def test_verify_scores_token_agreement(mock_server):
    request = {"prompt": "The first man to", "max_tokens": 4}
    good = httpx.post(mock_server.base_url + "/complete", json=request).json()
    tampered = {"tokenData": [dict(t, id=-1) for t in good["tokenData"]]}

    ok = httpx.post(mock_server.base_url + "/verify_completion", json={"request": request, "response": good})
    bad = httpx.post(mock_server.base_url + "/verify_completion", json={"request": request, "response": tampered})

    assert ok.json() == {"result": 1.0}
    assert bad.json() == {"result": 0.0}


def test_rejects_non_post_unknown_paths_and_bad_json(mock_server):
    assert httpx.get(mock_server.base_url + "/complete").status_code == 400
    assert httpx.post(mock_server.base_url + "/nope", content=b"{}").status_code == 404
    assert httpx.post(mock_server.base_url + "/complete", content=b"not json").status_code == 400
    assert httpx.post(mock_server.base_url + "/complete", content=b'{"max_tokens":1}').status_code == 400
    # wrong types inside an otherwise valid object
    assert httpx.post(mock_server.base_url + "/complete", content=b'{"prompt":5,"max_tokens":2}').status_code == 400
    assert httpx.post(
        mock_server.base_url + "/chat/completions", content=b'{"messages":["hi"],"max_tokens":2}'
    ).status_code == 400
