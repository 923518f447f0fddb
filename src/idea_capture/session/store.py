"""Conversation sessions and their JSON store"""

import json
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any
import logging

logger = logging.getLogger(__name__)

ROLE_LABELS = {"user": "You", "assistant": "AI"}


def _now() -> str:
    return datetime.now().isoformat(timespec='seconds')


@dataclass
class Message:
    """One turn of the conversation"""
    role: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_now)


@dataclass
class ConversationSession:
    """A conversation transcript"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    messages: List[Message] = field(default_factory=list)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def __post_init__(self):
        if not self.title:
            created = datetime.fromisoformat(self.created_at)
            self.title = f"Session {created.strftime('%Y-%m-%d')}"

    def add_message(self, role: str, content: str) -> Message:
        if role not in ROLE_LABELS:
            raise ValueError(f"Unknown role: {role}")
        message = Message(role=role, content=content)
        self.messages.append(message)
        self.updated_at = message.timestamp
        return message

    @property
    def character_count(self) -> int:
        return sum(len(m.content) for m in self.messages)

    def chat_messages(self) -> List[Dict[str, str]]:
        """Messages in chat completion format"""
        return [{"role": m.role, "content": m.content} for m in self.messages]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationSession":
        messages = [Message(**m) for m in data.get("messages", [])]
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            messages=messages,
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
        )


def render_markdown(session: ConversationSession) -> str:
    """Render a session as the Markdown note that gets exported"""
    created = datetime.fromisoformat(session.created_at)

    lines = [
        f"# {session.title}",
        "",
        f"> Created: {created.strftime('%Y-%m-%d %H:%M')}",
        "",
        "---",
        "",
        "## Conversation",
        "",
    ]
    for message in session.messages:
        timestamp = datetime.fromisoformat(message.timestamp).strftime('%H:%M')
        lines.append(f"### {ROLE_LABELS[message.role]} ({timestamp})")
        lines.append("")
        lines.append(message.content)
        lines.append("")

    lines += [
        "---",
        "",
        "*Captured with Idea Capture*",
        "",
    ]
    return "\n".join(lines)


class SessionStore:
    """Keyed store of sessions, one JSON file per session id"""

    CURRENT_FILE = "current_session"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.directory / f"session_{session_id}.json"

    def save(self, session: ConversationSession) -> None:
        with open(self._path(session.id), 'w', encoding='utf-8') as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved session {session.id} ({len(session.messages)} messages)")

    def load(self, session_id: str) -> Optional[ConversationSession]:
        path = self._path(session_id)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return ConversationSession.from_dict(json.load(f))

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        if self.current_session_id == session_id:
            (self.directory / self.CURRENT_FILE).unlink()
        return True

    @property
    def current_session_id(self) -> Optional[str]:
        current = self.directory / self.CURRENT_FILE
        if not current.exists():
            return None
        return current.read_text(encoding='utf-8').strip() or None

    @current_session_id.setter
    def current_session_id(self, session_id: str) -> None:
        (self.directory / self.CURRENT_FILE).write_text(session_id, encoding='utf-8')

    def get_or_create_current(self) -> ConversationSession:
        """The current session, creating and saving a new one if needed"""
        session_id = self.current_session_id
        session = self.load(session_id) if session_id else None
        if session is None:
            session = ConversationSession()
            self.save(session)
            self.current_session_id = session.id
            logger.info(f"Session started: {session.id}")
        return session

    def list_sessions(self) -> List[Dict[str, Any]]:
        """All stored sessions, most recently updated first"""
        sessions = []
        for path in self.directory.glob("session_*.json"):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading session {path}: {e}")
                continue
            sessions.append({
                "file": str(path),
                "session_id": data.get("id"),
                "title": data.get("title"),
                "created_at": data.get("created_at"),
                "updated_at": data.get("updated_at"),
                "message_count": len(data.get("messages", [])),
            })
        return sorted(sessions, key=lambda s: s["updated_at"] or "", reverse=True)
