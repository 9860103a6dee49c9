#!/usr/bin/env python3
"""
Tests for the session store
"""
import threading

from captcha_session import CaptchaSession
from session_store import SessionStore

ANSWER = (0, 1, 2, 0, 1, 2)


def make_session(session_id="s"):
    return CaptchaSession(session_id, ANSWER, b'img')


def test_swap_returns_previous():
    store = SessionStore()
    first, second = make_session(), make_session()
    assert store.swap("s", first) is None
    assert store.swap("s", second) is first
    assert store.get("s") is second
    assert len(store) == 1


def test_pop_and_contains():
    store = SessionStore()
    session = make_session()
    store.swap("s", session)
    assert "s" in store
    assert store.pop("s") is session
    assert "s" not in store
    assert store.pop("s") is None


def test_remove_if_only_matches_same_session():
    store = SessionStore()
    old, new = make_session(), make_session()
    store.swap("s", new)
    assert store.remove_if("s", old) is False
    assert store.get("s") is new
    assert store.remove_if("s", new) is True
    assert store.get("s") is None


def test_snapshot_and_clear():
    store = SessionStore()
    sessions = {name: make_session(name) for name in ("a", "b", "c")}
    for name, session in sessions.items():
        store.swap(name, session)
    assert sorted(store.session_ids()) == ["a", "b", "c"]
    assert dict(store.snapshot()) == sessions
    removed = store.clear()
    assert set(map(id, removed)) == set(map(id, sessions.values()))
    assert len(store) == 0


def test_concurrent_swaps_keep_one_entry():
    """Every displaced session is handed back exactly once"""
    store = SessionStore()
    sessions = [make_session() for _ in range(64)]
    displaced = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(sessions))

    def install(session):
        barrier.wait()
        previous = store.swap("s", session)
        if previous is not None:
            with lock:
                displaced.append(previous)

    threads = [threading.Thread(target=install, args=(s,)) for s in sessions]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 1
    survivor = store.get("s")
    assert len(displaced) == len(sessions) - 1
    assert survivor not in displaced
    assert len(set(map(id, displaced))) == len(displaced)
