"""Conversation history and session store tests"""
import threading
import time

import pytest

from search_agent.conversation import ConversationHistory, SessionStore, Turn


def _fill(history, count):
    for i in range(count):
        role = "user" if i % 2 == 0 else "assistant"
        history.append(Turn(role, f"message {i}"))


def test_render_empty_history():
    """Empty history renders as an empty string"""
    assert ConversationHistory().render_context(10) == ""


def test_render_labels_and_order():
    history = ConversationHistory()
    history.append(Turn("user", "Hi"))
    history.append(Turn("assistant", "Hello!"))
    assert history.render_context(10) == "User: Hi\nAssistant: Hello!"


def test_render_window_keeps_most_recent_in_order():
    """After 15 turns with a window of 10 only the last 10 are shown, oldest first"""
    history = ConversationHistory()
    _fill(history, 15)
    rendered = history.render_context(10).splitlines()
    assert len(rendered) == 10
    assert rendered[0].endswith("message 5")
    assert rendered[-1].endswith("message 14")
    assert [line.split("message ")[1] for line in rendered] == [str(i) for i in range(5, 15)]
    # storage itself is not trimmed
    assert len(history) == 15


def test_render_non_positive_window():
    history = ConversationHistory()
    _fill(history, 3)
    assert history.render_context(0) == ""


def test_reset_clears_everything():
    history = ConversationHistory()
    _fill(history, 4)
    history.reset()
    assert len(history) == 0
    assert history.render_context(10) == ""


def test_turn_is_immutable():
    turn = Turn("user", "Hi")
    with pytest.raises(Exception):
        turn.content = "changed"


def test_turn_rejects_unknown_role():
    with pytest.raises(ValueError):
        Turn("system", "nope")


def test_turns_snapshot_is_detached():
    """The turns property returns a copy that later appends do not change"""
    history = ConversationHistory()
    history.append(Turn("user", "one"))
    snapshot = history.turns
    history.append(Turn("assistant", "two"))
    assert len(snapshot) == 1


def test_concurrent_extend_keeps_pairs_together():
    """Pairs appended from several threads never interleave"""
    history = ConversationHistory()

    def writer(name):
        for i in range(50):
            history.extend(Turn("user", f"{name}-{i}"), Turn("assistant", f"{name}-{i}"))

    threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    turns = history.turns
    assert len(turns) == 400
    for user_turn, assistant_turn in zip(turns[::2], turns[1::2]):
        assert user_turn.role == "user"
        assert assistant_turn.role == "assistant"
        assert user_turn.content == assistant_turn.content


def test_sessions_are_isolated():
    store = SessionStore()
    store.get("alice").append(Turn("user", "alice says hi"))
    assert store.get("bob").render_context(10) == ""
    assert "alice says hi" in store.get("alice").render_context(10)
    assert store.session_ids() == ["alice", "bob"]


def test_session_get_returns_same_history():
    store = SessionStore()
    assert store.get("s1") is store.get("s1")


def test_session_reset_only_touches_one_session():
    store = SessionStore()
    store.get("a").append(Turn("user", "a"))
    store.get("b").append(Turn("user", "b"))
    store.reset("a")
    assert len(store.get("a")) == 0
    assert len(store.get("b")) == 1


def test_session_drop():
    store = SessionStore()
    store.get("gone")
    assert store.drop("gone") is True
    assert store.drop("gone") is False
    assert store.session_ids() == []


def test_session_cleanup_on_expiration():
    """Idle sessions are removed once the TTL passes"""
    store = SessionStore(ttl_seconds=0.05)
    for i in range(3):
        store.get(f"s{i}").append(Turn("user", "hi"))
    time.sleep(0.1)
    assert store.cleanup_expired() == 3
    assert store.session_ids() == []


def test_expired_session_starts_fresh_on_access():
    store = SessionStore(ttl_seconds=0.05)
    store.get("s").append(Turn("user", "old"))
    time.sleep(0.1)
    assert len(store.get("s")) == 0


def test_accessing_other_session_drops_expired_ones():
    """Expired sessions are swept even when their id is never used again"""
    store = SessionStore(ttl_seconds=0.05)
    store.get("a").append(Turn("user", "hi"))
    time.sleep(0.1)
    store.get("b")
    assert store.session_ids() == ["b"]
    assert store.drop("a") is False


def test_no_ttl_never_expires():
    store = SessionStore()
    store.get("s")
    assert store.cleanup_expired() == 0
