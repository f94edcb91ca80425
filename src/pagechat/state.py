"""Application state machines, answer mode and the generation counter."""

from __future__ import annotations

import asyncio
from enum import Enum


class ConversationState(str, Enum):
    """Finite state machine for one in-flight question."""

    IDLE = "IDLE"
    DISPATCHED = "DISPATCHED"
    STREAMING = "STREAMING"
    TERMINAL = "TERMINAL"


class AnswerMode(str, Enum):
    """Which backend answers questions; the values are the persisted spelling."""

    LOCAL = "local"
    REMOTE = "online"

    @classmethod
    def from_preference(cls, value: object) -> AnswerMode:
        """Map a stored preference to a mode; anything unknown means remote."""
        return cls.LOCAL if value == cls.LOCAL.value else cls.REMOTE


class BridgeStatus(str, Enum):
    """Availability of the remote-call bridge."""

    PENDING = "PENDING"
    READY = "READY"
    DEGRADED = "DEGRADED"


class StateManager:
    """Manage conversation state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = ConversationState.IDLE

    @property
    def state(self) -> ConversationState:
        """Return the current state without locking (for rendering only)."""
        return self._state

    async def transition_to(self, new_state: ConversationState) -> ConversationState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: ConversationState,
        new_state: ConversationState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True

    async def begin_request(self) -> bool:
        """Enter DISPATCHED when no question is in flight."""
        async with self._lock:
            if self._state not in (ConversationState.IDLE, ConversationState.TERMINAL):
                return False
            self._state = ConversationState.DISPATCHED
            return True

    async def can_send_message(self) -> bool:
        """Return True when message submission is allowed."""
        async with self._lock:
            return self._state in (ConversationState.IDLE, ConversationState.TERMINAL)


class GenerationCounter:
    """Monotonic token used to discard results of superseded requests."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        """Start a new generation and return its token."""
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value
