"""Tests for the live session registry."""
from __future__ import annotations

import threading

import pytest

from rrweb_uploader.services.registry import ReplaySession, SessionRegistry
from rrweb_uploader.utils.exceptions import BadRequest, UnknownSession


def test_buffered_count_is_sum_of_chunks_in_call_order(registry):
    chunks = [
        [{"timestamp": 3}, {"timestamp": 1}],
        [],
        [{"timestamp": 2}],
        [{"timestamp": 9}, {"timestamp": 8}, {"timestamp": 7}],
    ]
    for chunk in chunks:
        registry.append("s1", chunk)

    session = registry.get("s1")
    assert session.event_count == sum(len(chunk) for chunk in chunks)
    # arrival order, never sorted at append time
    assert [event["timestamp"] for event in session.events] == [3, 1, 2, 9, 8, 7]


def test_get_or_create_returns_same_session(registry):
    first = registry.get_or_create("s1", meta={"url": "/a"})
    second = registry.get_or_create("s1", meta={"userAgent": "ua"})

    assert first is second
    assert len(registry) == 1
    assert second.meta == {"url": "/a", "userAgent": "ua"}
    assert second.token == first.token


def test_started_session_has_token_implicit_does_not(registry):
    started = registry.get_or_create("started")
    registry.append("implicit", [{"timestamp": 1}])

    assert started.token
    assert registry.get("implicit").token is None


def test_start_after_implicit_creation_mints_token(registry):
    registry.append("s1", [{"timestamp": 1}])
    session = registry.get_or_create("s1", meta={"url": "/late"})

    assert session.token
    assert session.event_count == 1
    assert session.meta == {"url": "/late"}


def test_tokens_are_unique_per_session(registry):
    tokens = {registry.get_or_create(f"s{i}").token for i in range(20)}
    assert len(tokens) == 20


def test_finalize_removes_session_once(registry):
    registry.append("s1", [{"timestamp": 1}])

    session = registry.finalize("s1")
    assert isinstance(session, ReplaySession)
    assert session.event_count == 1
    assert "s1" not in registry
    assert registry.finalize("s1") is None


def test_append_rejects_bad_input(registry):
    with pytest.raises(BadRequest):
        registry.append("", [{"timestamp": 1}])
    with pytest.raises(BadRequest):
        registry.append("s1", {"timestamp": 1})
    assert len(registry) == 0


def test_empty_append_is_noop_but_refreshes_activity(registry, clock):
    registry.get_or_create("s1")
    clock.advance(5000)
    registry.append("s1", [])

    session = registry.get("s1")
    assert session.event_count == 0
    assert session.last_activity_at == clock.now


def test_strict_mode_requires_start(clock):
    strict = SessionRegistry(strict=True, clock=clock)
    with pytest.raises(UnknownSession):
        strict.append("s1", [{"timestamp": 1}])

    strict.get_or_create("s1")
    strict.append("s1", [{"timestamp": 1}])
    assert strict.get("s1").event_count == 1


def test_sweep_evicts_only_idle_sessions(registry, clock):
    registry.get_or_create("idle")
    clock.advance(20 * 60 * 1000)
    registry.get_or_create("active")
    clock.advance(11 * 60 * 1000)

    evicted = registry.sweep_expired()

    assert evicted == ["idle"]
    assert "idle" not in registry
    assert "active" in registry


def test_sweep_keeps_session_at_exact_timeout(registry, clock):
    registry.get_or_create("s1")
    clock.advance(registry.idle_timeout_ms)
    assert registry.sweep_expired() == []
    assert registry.sweep_expired(now=clock.now + 1) == ["s1"]


def test_append_refresh_prevents_eviction(registry, clock):
    registry.append("s1", [{"timestamp": 1}])
    clock.advance(25 * 60 * 1000)
    registry.append("s1", [{"timestamp": 2}])
    clock.advance(25 * 60 * 1000)

    assert registry.sweep_expired() == []


def test_concurrent_get_or_create_creates_one_session(registry):
    results = []

    def worker():
        results.append(registry.get_or_create("shared"))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 1
    assert all(session is results[0] for session in results)
