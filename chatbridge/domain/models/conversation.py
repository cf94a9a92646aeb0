"""
Conversation domain models - Pure business logic for chat sessions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Iterable, Iterator
from enum import Enum

from ..errors import InvalidState


class Role(Enum):
    """Author of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


class BackendKind(Enum):
    """Remote completion backends a session can be bound to."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @classmethod
    def parse(cls, value: Any) -> BackendKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise InvalidState(f"Unknown backend {value!r} (expected one of: {valid})")


@dataclass(frozen=True)
class Turn:
    """One message in a conversation. Immutable once created."""
    role: Role
    text: str

    def to_record(self) -> Dict[str, str]:
        """Convert to the persisted `{role, text}` record."""
        return {"role": self.role.value, "text": self.text}

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> Turn:
        """Create Turn from a `{role, text}` record."""
        if not isinstance(data, dict):
            raise InvalidState(f"Transcript record must be a mapping, got {type(data).__name__}")
        try:
            role = Role(data.get("role"))
        except ValueError:
            raise InvalidState(f"Invalid turn role: {data.get('role')!r}")
        text = data.get("text")
        if not isinstance(text, str):
            raise InvalidState("Turn text must be a string")
        return cls(role=role, text=text)


@dataclass
class Transcript:
    """Ordered history of turns. Append-only except for trim and clear."""
    turns: List[Turn] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.turns)

    def __getitem__(self, index: int) -> Turn:
        return self.turns[index]

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def add_user_turn(self, text: str) -> Turn:
        turn = Turn(role=Role.USER, text=text)
        self.append(turn)
        return turn

    def add_assistant_turn(self, text: str) -> Turn:
        turn = Turn(role=Role.ASSISTANT, text=text)
        self.append(turn)
        return turn

    def trim(self, max_turns: int) -> int:
        """Drop the oldest turns until at most `max_turns` remain.

        Returns the number of turns removed.
        """
        if max_turns < 0:
            raise InvalidState(f"max_turns must be >= 0, got {max_turns}")
        excess = len(self.turns) - max_turns
        if excess <= 0:
            return 0
        del self.turns[:excess]
        return excess

    def clear(self) -> None:
        self.turns = []

    def copy(self) -> Transcript:
        return Transcript(turns=list(self.turns))

    def to_records(self) -> List[Dict[str, str]]:
        return [turn.to_record() for turn in self.turns]

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> Transcript:
        return cls(turns=[Turn.from_record(r) for r in records])

    def last_turn(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by a backend."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class CompletionResult:
    """Result of one non-streaming backend call."""
    text: str
    usage: Usage = field(default_factory=Usage)
    model: Optional[str] = None
    stop_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamChunk:
    """One piece of a streaming backend response.

    Usage is only set on the chunk(s) where the vendor reports it.
    """
    text: str = ""
    usage: Optional[Usage] = None
