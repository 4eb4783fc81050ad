"""JSON-backed chat session persistence."""

from kbchat.core.models import (
    DEFAULT_SESSION_TITLE,
    GREETING_MESSAGE,
    ChatMessage,
    MessageRole,
)
from kbchat.core.storage.session_store import SessionStore


def _user(content):
    return ChatMessage(role=MessageRole.USER, content=content)


def test_first_listing_seeds_greeting_session(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")

    sessions = store.list_sessions()

    assert len(sessions) == 1
    assert sessions[0].title == DEFAULT_SESSION_TITLE
    assert sessions[0].messages[0].content == GREETING_MESSAGE
    assert (tmp_path / "sessions.json").exists()


def test_save_messages_roundtrip_and_title(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    session = store.create_session()

    messages = session.messages + [_user("什么是人工智能以及它的历史？")]
    store.save_messages(session.id, messages)

    loaded = SessionStore(tmp_path / "sessions.json").load_session(session.id)
    assert loaded is not None
    assert loaded.title == "什么是人工智能以及它..."
    assert [m.content for m in loaded.messages] == [GREETING_MESSAGE, "什么是人工智能以及它的历史？"]


def test_short_first_message_title_and_title_is_kept(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    session = store.create_session()

    store.save_messages(session.id, [_user("你好")])
    updated = store.save_messages(session.id, [_user("另一个很长很长很长的问题")])

    assert updated.title == "你好"


def test_create_session_is_newest_first(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    first = store.list_sessions()[0]

    second = store.create_session()

    assert [s.id for s in store.list_sessions()] == [second.id, first.id]


def test_save_messages_unknown_session(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    assert store.save_messages("missing", [_user("hi")]) is None


def test_delete_last_session_creates_fresh_one(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    only = store.list_sessions()[0]

    current = store.delete_session(only.id)

    assert current.id != only.id
    assert current.messages[0].content == GREETING_MESSAGE
    assert [s.id for s in store.list_sessions()] == [current.id]


def test_delete_returns_remaining_head(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")
    older = store.list_sessions()[0]
    newer = store.create_session()

    current = store.delete_session(newer.id)

    assert current.id == older.id


def test_corrupt_file_starts_over(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("[{broken", encoding="utf-8")

    sessions = SessionStore(path).list_sessions()

    assert len(sessions) == 1
    assert sessions[0].title == DEFAULT_SESSION_TITLE


def test_create_on_empty_store_keeps_single_session(tmp_path):
    store = SessionStore(tmp_path / "sessions.json")

    session = store.create_session()

    assert [s.id for s in store.list_sessions()] == [session.id]
