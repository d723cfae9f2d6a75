"""Tests for the in-process session store."""

import threading

from llm.conversation_store import ConversationStateStore, SessionKey
from tickets.models import AuthorKind

KEY = SessionKey(tenant_id=1, user_id=10, ticket_id=100)


def test_missing_key_returns_fresh_session(sessions):
    session = sessions.get(KEY)
    assert session.key == KEY
    assert session.history == []
    assert session.is_fresh


def test_changes_are_invisible_until_put(sessions):
    session = sessions.get(KEY)
    session.add_message(AuthorKind.CUSTOMER, "oi")
    assert sessions.get(KEY).history == []

    sessions.put(session)
    assert [m.text for m in sessions.get(KEY).history] == ["oi"]


def test_get_returns_a_copy(sessions):
    session = sessions.get(KEY)
    session.add_message(AuthorKind.CUSTOMER, "oi")
    sessions.put(session)

    copy = sessions.get(KEY)
    copy.history.clear()
    assert len(sessions.get(KEY).history) == 1


def test_session_expires_after_ttl(sessions, clock):
    session = sessions.get(KEY)
    session.add_message(AuthorKind.CUSTOMER, "oi")
    sessions.put(session)

    clock.advance(3600)
    assert len(sessions.get(KEY).history) == 1

    clock.advance(1)
    assert sessions.get(KEY).is_fresh


def test_put_refreshes_last_interaction(sessions, clock):
    session = sessions.get(KEY)
    sessions.put(session)
    clock.advance(3000)
    sessions.put(sessions.get(KEY))
    clock.advance(3000)
    assert sessions.get(KEY).last_interaction == clock.now - 3000


def test_keys_are_isolated(sessions):
    session = sessions.get(KEY)
    session.add_message(AuthorKind.CUSTOMER, "oi")
    sessions.put(session)

    assert sessions.get(SessionKey(2, 10, 100)).is_fresh
    assert sessions.get(SessionKey(1, 10, 0)).is_fresh


def test_evict_and_purge(sessions, clock):
    sessions.put(sessions.get(KEY))
    sessions.put(sessions.get(SessionKey(1, 11)))
    assert sessions.evict(KEY) is True
    assert sessions.evict(KEY) is False

    clock.advance(4000)
    assert sessions.purge_expired() == 1
    assert len(sessions) == 0


def test_concurrent_puts_do_not_lose_sessions():
    store = ConversationStateStore()

    def worker(user_id):
        for _ in range(50):
            session = store.get(SessionKey(1, user_id))
            session.add_message(AuthorKind.CUSTOMER, "msg")
            store.put(session)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 8
    assert all(len(store.get(SessionKey(1, i)).history) == 50 for i in range(8))
