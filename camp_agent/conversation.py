"""Provider-agnostic conversation types.

The language-model provider's wire format never leaks past
``camp_agent.agent``: sessions store ``Turn`` objects, and tool calls and
results travel as ``ToolCall`` / ``ToolResult`` pairs correlated by an
opaque ``call_id``.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "tool_result"]


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    input: dict[str, Any]
    call_id: str


@dataclass(frozen=True)
class ToolResult:
    """The outcome of executing one ``ToolCall``."""

    call_id: str
    payload: dict[str, Any]
    is_error: bool = False

    def content(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, default=str)


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, text: str, tool_calls: tuple[ToolCall, ...] = ()) -> Turn:
        return cls(role="assistant", content=text, tool_calls=tuple(tool_calls))

    @classmethod
    def results(cls, results: list[ToolResult] | tuple[ToolResult, ...]) -> Turn:
        return cls(role="tool_result", tool_results=tuple(results))


@dataclass
class Session:
    """A conversation held by the session store.

    Turns are append-only: they are never mutated, removed or reordered.
    ``lock`` serialises concurrent requests that target the same session.
    """

    id: str
    created_at: float = field(default_factory=time.time)
    _turns: list[Turn] = field(default_factory=list, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def window(self, k: int) -> list[Turn]:
        """Return the most recent *k* turns (the view sent to the model)."""
        if k <= 0:
            return []
        return list(self._turns[-k:])

    def expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at > ttl_seconds

    def __len__(self) -> int:
        return len(self._turns)
