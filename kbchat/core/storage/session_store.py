"""File-based chat session store.

Sessions live in a single JSON file, newest first. The store always holds
at least one session: loading an empty file or deleting the last session
seeds a fresh one with the assistant greeting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..models.chat import DEFAULT_SESSION_TITLE, ChatMessage, ChatSession
from ..models.enums import MessageRole
from ...observability.logger import get_logger

logger = get_logger(__name__)

TITLE_LENGTH = 10


def derive_title(session: ChatSession, messages: list[ChatMessage]) -> str:
    """Title a default-named session after its first user message."""
    if session.title != DEFAULT_SESSION_TITLE:
        return session.title

    first_user = next((m for m in messages if m.role == MessageRole.USER), None)
    if first_user is None:
        return session.title

    content = first_user.content
    suffix = "..." if len(content) > TITLE_LENGTH else ""
    return content[:TITLE_LENGTH] + suffix


class SessionStore:
    """Simple JSON-backed persistence for chat sessions."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else Path("data/sessions/sessions.json")
        self.path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------
    def _dump(self, sessions: list[ChatSession]) -> None:
        data = [session.model_dump(mode="json") for session in sessions]
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            # Corrupt history starts over instead of blocking the chat
            logger.warning("session_file_unreadable", path=str(self.path), error=str(exc))
            return []
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def _stored_sessions(self) -> list[ChatSession]:
        sessions: list[ChatSession] = []
        for raw in self._load():
            try:
                sessions.append(ChatSession.model_validate(raw))
            except ValidationError as exc:
                logger.warning("session_record_skipped", error=str(exc))
        return sessions

    def list_sessions(self) -> list[ChatSession]:
        """Return all sessions, creating the first one when none exist."""
        sessions = self._stored_sessions()
        if not sessions:
            sessions = [ChatSession.new()]
            self._dump(sessions)
        return sessions

    def create_session(self) -> ChatSession:
        session = ChatSession.new()
        self._dump([session] + self._stored_sessions())
        logger.info("session_created", session_id=session.id)
        return session

    def load_session(self, session_id: str) -> ChatSession | None:
        for session in self.list_sessions():
            if session.id == session_id:
                return session
        return None

    def save_messages(self, session_id: str, messages: list[ChatMessage]) -> ChatSession | None:
        """Replace a session's messages, retitling it on the first user message."""
        sessions = self.list_sessions()
        updated: ChatSession | None = None
        for session in sessions:
            if session.id == session_id:
                session.title = derive_title(session, messages)
                session.messages = list(messages)
                updated = session
                break

        if updated is None:
            logger.warning("session_not_found", session_id=session_id)
            return None

        self._dump(sessions)
        return updated

    def delete_session(self, session_id: str) -> ChatSession:
        """Delete a session and return the session that becomes current."""
        remaining = [s for s in self.list_sessions() if s.id != session_id]
        if not remaining:
            remaining = [ChatSession.new()]
        self._dump(remaining)
        logger.info("session_deleted", session_id=session_id)
        return remaining[0]
