"""Tests for the generateContent client using httpx.MockTransport."""

import json

import httpx
import pytest

from maktaba.credentials import CredentialPool
from maktaba.errors import EmptyResponse, NoCredentials, ServerError, ServiceBusy
from maktaba.gemini_client import GeminiTextClient, GenerationConfig
from maktaba.session_state import SessionState

ENDPOINT = "https://example.test/v1beta/models/m:generateContent"


def _ok(text):
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _client(catalog, keys, handler, **kwargs):
    return GeminiTextClient(
        CredentialPool(keys),
        catalog,
        endpoint=ENDPOINT,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_payload_shape_and_key_param(catalog):
    requests = []

    def handler(request):
        requests.append(request)
        return _ok("reply")

    client = _client(catalog, ["key-one"], handler)
    assert client.send("هل يوجد B12؟", SessionState()) == "reply"

    request = requests[0]
    assert request.method == "POST"
    assert request.url.params["key"] == "key-one"
    body = json.loads(request.content)
    assert body["generationConfig"] == {
        "temperature": 0.4, "topK": 20, "topP": 0.9, "maxOutputTokens": 512,
    }
    assert len(body["contents"]) == 1
    assert body["contents"][0]["role"] == "user"
    text = body["contents"][0]["parts"][0]["text"]
    assert text.endswith("\n\nUser: هل يوجد B12؟")
    assert "الأيام" in text  # catalog is embedded


def test_entity_included_in_prompt(catalog):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return _ok("ok")

    session = SessionState()
    session.remember_entity("A05", "تاريخ الطبري")
    _client(catalog, ["k"], handler).send("أريد الجزء الثاني", session)
    text = bodies[0]["contents"][0]["parts"][0]["text"]
    assert 'ID="A05"' in text
    assert 'العنوان="تاريخ الطبري"' in text


def test_quota_and_auth_rotate_to_next_key(catalog):
    keys_seen = []
    statuses = {"k1": 429, "k2": 403}

    def handler(request):
        key = request.url.params["key"]
        keys_seen.append(key)
        if key in statuses:
            return httpx.Response(statuses[key], json={"error": {"message": "nope"}})
        return _ok("from k3")

    client = _client(catalog, ["k1", "k2", "k3"], handler)
    assert client.send("hi", SessionState()) == "from k3"
    assert keys_seen == ["k1", "k2", "k3"]
    assert client.pool.current() == "k3"


def test_all_keys_failing_raises_service_busy(catalog):
    keys_seen = []

    def handler(request):
        keys_seen.append(request.url.params["key"])
        return httpx.Response(429, json={"error": {"message": "quota exhausted"}})

    client = _client(catalog, ["k1", "k2", "k3", "k4"], handler)
    with pytest.raises(ServiceBusy) as exc_info:
        client.send("hi", SessionState())

    assert keys_seen == ["k1", "k2", "k3", "k4"]
    assert exc_info.value.last_error.status_code == 429
    assert "quota exhausted" in str(exc_info.value.last_error)


def test_server_error_and_empty_reply_rotate_by_default(catalog):
    def handler(request):
        key = request.url.params["key"]
        if key == "k1":
            return httpx.Response(500, text="internal")
        if key == "k2":
            return httpx.Response(200, json={"candidates": []})
        return _ok("third time")

    client = _client(catalog, ["k1", "k2", "k3"], handler)
    assert client.send("hi", SessionState()) == "third time"


def test_fail_fast_on_server_error_when_disabled(catalog):
    keys_seen = []

    def handler(request):
        keys_seen.append(request.url.params["key"])
        return httpx.Response(500, json={"error": {"message": "backend down"}})

    client = _client(catalog, ["k1", "k2"], handler, retry_server_errors=False)
    with pytest.raises(ServerError, match="backend down"):
        client.send("hi", SessionState())
    assert keys_seen == ["k1"]


def test_non_json_body_is_empty_response(catalog):
    client = _client(
        catalog, ["k1"], lambda r: httpx.Response(200, text="<html>"), retry_server_errors=False,
    )
    with pytest.raises(EmptyResponse):
        client.send("hi", SessionState())


def test_network_error_rotates(catalog):
    def handler(request):
        if request.url.params["key"] == "k1":
            raise httpx.ConnectError("connection refused")
        return _ok("ok")

    assert _client(catalog, ["k1", "k2"], handler).send("hi", SessionState()) == "ok"


def test_empty_pool_sends_nothing(catalog):
    calls = []

    def handler(request):
        calls.append(request)
        return _ok("never")

    with pytest.raises(NoCredentials):
        _client(catalog, [], handler).send("hi", SessionState())
    assert calls == []


def test_from_config(catalog):
    config = {
        "gemini": {
            "endpoint": ENDPOINT,
            "timeout": 12,
            "retry_server_errors": False,
            "generation": {"temperature": 0.1, "max_output_tokens": 64},
        }
    }
    client = GeminiTextClient.from_config(config, CredentialPool(["k"]), catalog)
    assert client.endpoint == ENDPOINT
    assert client.generation == GenerationConfig(temperature=0.1, max_output_tokens=64)
    assert ServerError not in client.retryable
    client.close()


def test_unknown_generation_keys_are_ignored(catalog):
    config = {"gemini": {"generation": {"temperature": 0.2, "candidate_count": 3}}}
    client = GeminiTextClient.from_config(config, CredentialPool(["k"]), catalog)
    assert client.generation == GenerationConfig(temperature=0.2)
    client.close()
