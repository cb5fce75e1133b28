"""Tests for the in-memory session store."""
import pytest

from error_handling import SessionConflictError
from mcp_servers.session_store import Session, SessionState, SessionStore


class Clock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


def test_put_and_get(store):
    handle = object()

    session = store.put("s1", handle)

    assert session.state == SessionState.ACTIVE
    assert session.created_at == 100.0
    assert store.get("s1") is handle
    assert "s1" in store
    assert len(store) == 1


def test_get_unknown_returns_none(store):
    assert store.get("missing") is None
    assert store.get_session("missing") is None


def test_put_rejects_live_session_id(store):
    store.put("s1", object())

    with pytest.raises(SessionConflictError) as exc_info:
        store.put("s1", object())

    assert exc_info.value.details == {"session_id": "s1"}


def test_session_id_can_be_reused_after_removal(store):
    store.put("s1", "first")
    store.remove("s1")

    store.put("s1", "second")

    assert store.get("s1") == "second"


def test_lookup_refreshes_activity(store, clock):
    store.put("s1", object())
    clock.now = 150.0

    session = store.get_session("s1")

    assert session.last_activity == 150.0
    assert session.request_count == 1


def test_remove_is_idempotent(store):
    store.put("s1", object())

    removed = store.remove("s1")

    assert removed.state == SessionState.CLOSED
    assert store.remove("s1") is None
    assert "s1" not in store


def test_expired(store, clock):
    store.put("old", object())
    clock.now = 160.0
    store.put("new", object())
    clock.now = 170.0

    assert [s.session_id for s in store.expired(60)] == ["old"]
    assert store.expired(0) == []


def test_clear(store):
    store.put("s1", object())
    store.put("s2", object())

    cleared = store.clear()

    assert sorted(s.session_id for s in cleared) == ["s1", "s2"]
    assert all(s.state == SessionState.CLOSED for s in cleared)
    assert len(store) == 0
    assert store.session_ids() == []


def test_states_are_active_and_closed_only():
    assert [state.value for state in SessionState] == ["active", "closed"]
    assert Session(session_id="s1", transport=None).state == SessionState.ACTIVE


def test_in_flight_request_is_never_expired(store, clock):
    store.put("s1", object())

    with store.track_request("s1") as session:
        assert session.in_flight == 1
        clock.now = 1000.0
        assert store.expired(60) == []

    assert session.in_flight == 0
    assert session.last_activity == 1000.0
    assert store.expired(60) == []
    clock.now = 1061.0
    assert [s.session_id for s in store.expired(60)] == ["s1"]


def test_track_request_for_unknown_session(store):
    with store.track_request("missing") as session:
        assert session is None


def test_track_request_survives_errors(store):
    store.put("s1", object())

    with pytest.raises(RuntimeError):
        with store.track_request("s1"):
            raise RuntimeError("handler failed")

    assert store.get_session("s1").in_flight == 0
