"""Question dispatch and assembly of streamed answers.

Handles precondition checks, directive expansion, dispatch to the local or
remote backend, token accumulation and discarding of superseded results.
"""

from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
from typing import TYPE_CHECKING

from ..directives import build_question, parse_directive
from ..events import (
    ContentSourceEvent,
    EventBus,
    ModelFallbackEvent,
    StreamEvent,
    Subscription,
)
from ..exceptions import BridgeCallError, BridgeUnavailableError, PreconditionError
from ..state import AnswerMode, ConversationState, StateManager
from ..transcript import ChatTurn

if TYPE_CHECKING:
    from ..bridge.base import Bridge
    from ..context import ShellContext
    from .sessions import SessionRegistry

LOGGER = logging.getLogger(__name__)

EMPTY_RESPONSE_PLACEHOLDER = "(No response was generated.)"
LOCAL_PREFIX = "ollama:"
REMOTE_PREFIX = "openrouter:"
NO_MODEL_SENTINEL = "ollama:none"

LOCAL_SOURCE = "local"
REMOTE_SOURCE = "remote"


def has_model(model: str) -> bool:
    """Return True when ``model`` names a real selection."""
    return bool(model) and model != NO_MODEL_SENTINEL


@dataclass
class PendingRequest:
    """The one question currently awaiting its answer."""

    generation: int
    source: str
    request_id: int
    turn: ChatTurn | None = None


class StreamCoordinator:
    """Dispatches questions and applies stream events to the transcript.

    Events are applied only while a request is pending, when they arrive on
    the channel of its backend, carry its request id and while its generation
    token is current.
    """

    def __init__(
        self,
        context: ShellContext,
        bridge: Bridge,
        state_manager: StateManager,
        sessions: SessionRegistry,
        *,
        default_remote_model: str,
    ) -> None:
        self.context = context
        self.bridge = bridge
        self.state = state_manager
        self.sessions = sessions
        self.default_remote_model = default_remote_model
        self._pending: PendingRequest | None = None
        self._request_ids = itertools.count(1)

    @property
    def pending(self) -> PendingRequest | None:
        return self._pending

    def check_preconditions(self) -> tuple[str, str]:
        """Return the page url and model a question would be sent with.

        Raises:
            BridgeUnavailableError: The bridge did not start.
            PreconditionError: No page is open or no model is selected.
        """
        if not self.context.bridge_ready:
            raise BridgeUnavailableError("The bridge is not available. Restart the application.")
        session = self.sessions.active
        url = session.url if session is not None else ""
        if not url:
            raise PreconditionError("Please open a web page first.")
        model = self.context.current_model
        if not has_model(model):
            raise PreconditionError("Please select a model first.")
        return url, model

    async def submit(self, text: str) -> bool:
        """Send ``text`` about the active page to the selected backend.

        Returns:
            True when the question was accepted by the bridge.
        """
        message = text.strip()
        if not message:
            return False
        if not await self.state.can_send_message():
            return False
        try:
            url, model = self.check_preconditions()
        except (BridgeUnavailableError, PreconditionError) as exc:
            self.context.transcript.add_system(str(exc))
            return False

        parsed = parse_directive(message)
        question = build_question(parsed.clean, parsed.directive)
        if not await self.state.begin_request():
            return False

        self.context.transcript.add("user", message)
        self.context.set_chat_busy(True, "Thinking...")
        local = self.context.mode == AnswerMode.LOCAL and model.startswith(LOCAL_PREFIX)
        self._pending = PendingRequest(
            generation=self.context.generation.current,
            source=LOCAL_SOURCE if local else REMOTE_SOURCE,
            request_id=next(self._request_ids),
        )
        request_id = self._pending.request_id
        LOGGER.info(
            "stream.dispatch",
            extra={
                "event": "stream.dispatch",
                "source": self._pending.source,
                "request_id": request_id,
                "model": model,
                "url": url,
                "directive": parsed.keyword,
            },
        )

        try:
            if local:
                await self.bridge.ask_local(
                    url, question, model[len(LOCAL_PREFIX) :], request_id=request_id
                )
            else:
                remote_model = (
                    model[len(REMOTE_PREFIX) :]
                    if model.startswith(REMOTE_PREFIX)
                    else self.default_remote_model
                )
                await self.bridge.ask_remote(url, question, remote_model, request_id=request_id)
        except Exception as exc:  # noqa: BLE001 - reported to the user, never retried.
            detail = exc.detail if isinstance(exc, BridgeCallError) else str(exc)
            LOGGER.error(
                "stream.dispatch_failed",
                extra={"event": "stream.dispatch_failed", "error": detail},
            )
            self._pending = None
            self.context.transcript.add_system(f"Error: {detail}")
            self.context.set_chat_busy(False)
            self.context.set_chat_status("Error", "error")
            await self.state.transition_to(ConversationState.IDLE)
            return False
        return True

    def _accepts(self, source: str, event: StreamEvent) -> PendingRequest | None:
        pending = self._pending
        if pending is None or pending.source != source:
            return None
        if event.request_id != pending.request_id:
            LOGGER.debug(
                "stream.foreign_event",
                extra={
                    "event": "stream.foreign_event",
                    "request_id": event.request_id,
                    "pending": pending.request_id,
                },
            )
            return None
        if not self.context.generation.is_current(pending.generation):
            LOGGER.debug(
                "stream.stale_event",
                extra={"event": "stream.stale_event", "generation": pending.generation},
            )
            return None
        return pending

    async def _apply(self, source: str, event: StreamEvent) -> None:
        pending = self._accepts(source, event)
        if pending is None:
            return
        transcript = self.context.transcript

        if event.response:
            if pending.turn is None:
                pending.turn = transcript.add("assistant", "", streaming=True)
                await self.state.transition_if(
                    ConversationState.DISPATCHED, ConversationState.STREAMING
                )
            pending.turn.append(event.response)
            transcript.touch(pending.turn)

        if not event.done:
            return

        if pending.turn is None:
            pending.turn = transcript.add("assistant", "", streaming=True)
        pending.turn.finish(EMPTY_RESPONSE_PLACEHOLDER)
        transcript.touch(pending.turn)
        self._pending = None
        if event.error:
            transcript.add_system(f"Error: {event.error}")
        self.context.set_chat_busy(False)
        await self.state.transition_to(ConversationState.TERMINAL)
        LOGGER.info(
            "stream.completed",
            extra={
                "event": "stream.completed",
                "source": source,
                "chars": len(pending.turn.text),
                "error": event.error,
            },
        )

    async def on_local_event(self, event: StreamEvent) -> None:
        await self._apply(LOCAL_SOURCE, event)

    async def on_remote_event(self, event: StreamEvent) -> None:
        await self._apply(REMOTE_SOURCE, event)

    def on_model_fallback(self, event: ModelFallbackEvent) -> None:
        if self._pending is not None:
            self.context.set_chat_status(f"Trying {event.to}...", "processing")

    def on_content_source(self, event: ContentSourceEvent) -> None:
        LOGGER.info(
            "stream.content_source",
            extra={
                "event": "stream.content_source",
                "mode": event.mode,
                "url": event.url,
                "source": event.source,
                "from_cache": event.from_cache,
                "length": event.length,
            },
        )

    async def supersede(self) -> None:
        """Abandon the pending request locally; the backend is not told."""
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        if pending.turn is not None and not pending.turn.complete:
            pending.turn.finish()
            self.context.transcript.touch(pending.turn)
        self.context.set_chat_busy(False)
        await self.state.transition_to(ConversationState.IDLE)

    def clear(self) -> None:
        self.context.transcript.clear()
        self.context.transcript.add_system("Chat cleared.")

    def subscribe(self, bus: EventBus) -> list[Subscription]:
        return [
            bus.local_stream.subscribe(self.on_local_event),
            bus.remote_stream.subscribe(self.on_remote_event),
            bus.model_fallback.subscribe(self.on_model_fallback),
            bus.content_source.subscribe(self.on_content_source),
        ]
