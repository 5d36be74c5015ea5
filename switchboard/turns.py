"""
Conversation turns — the role/content pairs every adapter consumes.

A dispatch works on an immutable snapshot: normalize_turns() copies the
caller's list into a tuple of frozen Turn objects, in the order given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from switchboard.errors import InvalidRequest

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"
ROLES = (SYSTEM, USER, ASSISTANT)


@dataclass(frozen=True)
class Turn:
    """A single chronological conversation turn."""
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        if not isinstance(data, dict):
            raise InvalidRequest(f"Turn must be an object, got {type(data).__name__}")
        role = data.get("role")
        content = data.get("content")
        if role not in ROLES:
            raise InvalidRequest(f"Unknown turn role: {role!r}")
        if not isinstance(content, str):
            raise InvalidRequest(f"Turn content must be a string (role={role})")
        return cls(role=role, content=content)


def normalize_turns(turns: Iterable[Turn | dict]) -> tuple[Turn, ...]:
    """Snapshot a turn list. Accepts Turn objects or {role, content} dicts."""
    if turns is None or isinstance(turns, (str, bytes, dict)):
        raise InvalidRequest("Turns must be a list of {role, content} objects")
    snapshot = []
    for turn in turns:
        if isinstance(turn, Turn):
            if turn.role not in ROLES:
                raise InvalidRequest(f"Unknown turn role: {turn.role!r}")
            snapshot.append(turn)
        else:
            snapshot.append(Turn.from_dict(turn))
    return tuple(snapshot)


def first_system(turns: Iterable[Turn]) -> str | None:
    """Content of the first system turn; later system turns are ignored."""
    for turn in turns:
        if turn.role == SYSTEM:
            return turn.content
    return None


def without_system(turns: Iterable[Turn]) -> list[Turn]:
    return [t for t in turns if t.role != SYSTEM]
