"""Unit tests for SessionManager."""

import pytest
from unittest.mock import Mock

from dictateflow.exceptions import PersistenceError
from dictateflow.models.session import Session, SessionStatus
from dictateflow.services.session_manager import SessionManager
from dictateflow.storage.session_store import InMemorySessionStore


def stored_sessions(store, count):
    sessions = []
    for i in range(count):
        session = Session.create(SessionStatus.COMPLETED)
        session.created_at = float(i + 1)
        store.put(session)
        sessions.append(session)
    return sessions


@pytest.mark.unit
class TestSessionManager:
    """Test cases for SessionManager."""

    def test_eviction_keeps_newest(self):
        store = InMemorySessionStore()
        sessions = stored_sessions(store, 23)
        manager = SessionManager(store, max_sessions=20)

        assert manager.evict_old_sessions() == 3
        remaining = manager.list_sessions()
        assert len(remaining) == 20
        assert {s.id for s in remaining} == {s.id for s in sessions[3:]}

    def test_eviction_under_limit_is_noop(self):
        store = InMemorySessionStore()
        stored_sessions(store, 5)
        assert SessionManager(store).evict_old_sessions() == 0
        assert len(store.get_all()) == 5

    def test_eviction_failure_is_not_raised(self):
        store = Mock()
        store.get_all.return_value = [Session.create() for _ in range(3)]
        store.delete.side_effect = OSError("disk gone")
        manager = SessionManager(store, max_sessions=1)
        assert manager.evict_old_sessions() == 0

    def test_save_failure_raises_persistence_error(self):
        store = Mock()
        store.put.side_effect = OSError("read-only filesystem")
        with pytest.raises(PersistenceError):
            SessionManager(store).save(Session.create())

    def test_get_session(self):
        store = InMemorySessionStore()
        sessions = stored_sessions(store, 2)
        manager = SessionManager(store)
        assert manager.get_session(sessions[0].id).id == sessions[0].id
        assert manager.get_session("unknown") is None

    def test_get_session_is_a_keyed_lookup(self):
        store = Mock()
        session = Session.create()
        store.get.return_value = session

        assert SessionManager(store).get_session(session.id) is session
        store.get.assert_called_once_with(session.id)
        store.get_all.assert_not_called()

    def test_get_session_read_failure_raises_persistence_error(self):
        store = Mock()
        store.get.side_effect = OSError("permission denied")
        with pytest.raises(PersistenceError):
            SessionManager(store).get_session("abc")

    def test_clear(self):
        store = InMemorySessionStore()
        stored_sessions(store, 3)
        manager = SessionManager(store)
        manager.clear()
        assert manager.list_sessions() == []
