"""Tests for the capture endpoints."""
from __future__ import annotations

import json

from fastapi.testclient import TestClient

from rrweb_uploader.main import create_app
from rrweb_uploader.constants import REPLAY_SECRET_HEADER


def _start(client, auth_headers, session_id="s1", meta=None):
    response = client.post(
        "/replay/start",
        json={"sessionId": session_id, "meta": meta or {}},
        headers=auth_headers,
    )
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_end_to_end_start_chunk_finish(client, auth_headers, store):
    started = _start(client, auth_headers, "s1", {"url": "/a"})
    assert started["token"]

    for timestamp in (10, 20):
        response = client.post(
            "/replay/chunk",
            json={"sessionId": "s1", "events": [{"type": 3, "timestamp": timestamp}]},
            headers=auth_headers,
        )
        assert response.status_code == 200

    response = client.post(
        "/replay/finish",
        json={"sessionId": "s1", "meta": {"duration": 1}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "uploaded"
    assert body["eventCount"] == 2
    assert body["artifactId"] == store.published[0].id
    assert body["artifactName"].startswith("session-s1-")
    assert body["artifactName"].endswith(".json")
    assert ":" not in body["artifactName"]

    artifact = json.loads(store.files[body["artifactId"]])
    assert artifact["sessionId"] == "s1"
    assert artifact["meta"] == {"url": "/a", "duration": 1}
    assert [event["timestamp"] for event in artifact["events"]] == [10, 20]
    assert artifact["counts"] == {"events": 2}
    assert artifact["createdAt"].endswith("Z")


def test_chunk_creates_session_implicitly(client, auth_headers, registry):
    response = client.post(
        "/replay/chunk",
        json={"sessionId": "fresh", "events": [{"timestamp": 1}, {"timestamp": 2}]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["bufferedEvents"] == 2
    assert registry.get("fresh").token is None


def test_missing_secret_is_rejected(client, registry):
    response = client.post("/replay/chunk", json={"sessionId": "s1", "events": []})
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "unauthorized"
    assert len(registry) == 0


def test_wrong_secret_is_rejected(client):
    response = client.post(
        "/replay/start",
        json={"sessionId": "s1"},
        headers={REPLAY_SECRET_HEADER: "nope"},
    )
    assert response.status_code == 401


def test_unconfigured_secret_rejects_everything(config, store, registry):
    config.replay_secret = ""
    client = TestClient(create_app(config, store=store, registry=registry))
    response = client.post("/replay/start", json={"sessionId": "s1"}, headers={REPLAY_SECRET_HEADER: ""})
    assert response.status_code == 401


def test_start_requires_session_id(client, auth_headers):
    response = client.post("/replay/start", json={"meta": {}}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "bad_request"


def test_chunk_rejects_malformed_body(client, auth_headers, registry):
    response = client.post(
        "/replay/chunk",
        json={"sessionId": "s1", "events": {"timestamp": 1}},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = client.post("/replay/chunk", json={"events": []}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/replay/chunk", json={"sessionId": "", "events": []}, headers=auth_headers)
    assert response.status_code == 400
    assert len(registry) == 0


def test_second_finish_reports_unknown_session(client, auth_headers, store):
    _start(client, auth_headers)
    first = client.post("/replay/finish", json={"sessionId": "s1"}, headers=auth_headers)
    second = client.post("/replay/finish", json={"sessionId": "s1"}, headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 500
    assert second.json()["detail"]["code"] == "unknown_session"
    assert len(store.published) == 1


def test_finish_after_idle_sweep_reports_unknown_session(client, auth_headers, registry, clock):
    client.post(
        "/replay/chunk",
        json={"sessionId": "s1", "events": [{"timestamp": 1}]},
        headers=auth_headers,
    )
    clock.advance(registry.idle_timeout_ms + 1)
    registry.sweep_expired()

    assert "s1" not in registry
    response = client.post("/replay/finish", json={"sessionId": "s1"}, headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "unknown_session"


def test_finish_with_unconfigured_storage_keeps_session(client, auth_headers, store, registry):
    _start(client, auth_headers)
    store.configured = False

    response = client.post("/replay/finish", json={"sessionId": "s1"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "storage_unavailable"
    assert "s1" in registry


def test_publish_failure_is_terminal(client, auth_headers, store, registry):
    _start(client, auth_headers)
    store.fail_publish = True

    response = client.post("/replay/finish", json={"sessionId": "s1"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "storage_unavailable"
    assert "s1" not in registry


def test_beacon_chunk_and_finish_with_token(client, auth_headers, store):
    token = _start(client, auth_headers, "s1", {"url": "/b"})["token"]

    body = json.dumps({"sessionId": "s1", "token": token, "events": [{"timestamp": 5}]})
    response = client.post("/replay/chunk-beacon", content=body, headers={"Content-Type": "text/plain"})
    assert response.status_code == 200
    assert response.json()["bufferedEvents"] == 1

    body = json.dumps({"sessionId": "s1", "token": token, "meta": {"reason": "pagehide"}})
    response = client.post("/replay/finish-beacon", content=body, headers={"Content-Type": "text/plain"})
    assert response.status_code == 200
    assert response.json()["status"] == "uploaded"
    assert response.json()["eventCount"] == 1

    artifact = json.loads(store.files[response.json()["artifactId"]])
    assert artifact["meta"] == {"url": "/b", "reason": "pagehide"}


def test_beacon_token_for_other_session_is_rejected(client, auth_headers, registry):
    token = _start(client, auth_headers, "s1")["token"]
    _start(client, auth_headers, "s2")

    for session_id in ("s2", "unknown"):
        body = json.dumps({"sessionId": session_id, "token": token, "events": [{"timestamp": 1}]})
        response = client.post("/replay/chunk-beacon", content=body)
        assert response.status_code == 401

    assert registry.get("s2").event_count == 0
    assert "unknown" not in registry


def test_beacon_does_not_accept_header_secret(client, auth_headers, registry):
    _start(client, auth_headers)
    body = json.dumps({"sessionId": "s1", "events": [{"timestamp": 1}]})

    response = client.post("/replay/chunk-beacon", content=body, headers=auth_headers)

    assert response.status_code == 401
    assert registry.get("s1").event_count == 0


def test_beacon_rejected_for_implicit_session(client, auth_headers):
    client.post("/replay/chunk", json={"sessionId": "s1", "events": []}, headers=auth_headers)
    body = json.dumps({"sessionId": "s1", "token": "rst_guess", "events": []})
    response = client.post("/replay/chunk-beacon", content=body)
    assert response.status_code == 401


def test_beacon_finish_wrong_token_keeps_session(client, auth_headers, registry, store):
    _start(client, auth_headers)
    body = json.dumps({"sessionId": "s1", "token": "wrong"})

    response = client.post("/replay/finish-beacon", content=body)

    assert response.status_code == 401
    assert "s1" in registry
    assert store.published == []


def test_beacon_malformed_body(client):
    response = client.post("/replay/chunk-beacon", content=b"{not json")
    assert response.status_code == 400

    response = client.post("/replay/chunk-beacon", content=b"[1, 2]")
    assert response.status_code == 400

    response = client.post("/replay/chunk-beacon", content=b"")
    assert response.status_code == 400


def test_beacon_events_must_be_list(client, auth_headers, registry):
    token = _start(client, auth_headers)["token"]
    body = json.dumps({"sessionId": "s1", "token": token, "events": "nope"})

    response = client.post("/replay/chunk-beacon", content=body)

    assert response.status_code == 400
    assert registry.get("s1").event_count == 0


def test_beacon_finish_in_background(config, store, registry, auth_headers):
    config.beacon_background_publish = True
    client = TestClient(create_app(config, store=store, registry=registry))
    token = _start(client, auth_headers)["token"]

    body = json.dumps({"sessionId": "s1", "token": token})
    response = client.post("/replay/finish-beacon", content=body)

    assert response.status_code == 202
    assert response.json()["status"] == "accepted"
    assert "s1" not in registry
    # TestClient runs background tasks before returning
    assert len(store.published) == 1
    assert store.published[0].name == response.json()["artifactName"]

    again = client.post("/replay/finish-beacon", content=body)
    assert again.status_code == 401
    assert len(store.published) == 1
