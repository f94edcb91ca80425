"""Typed event channels for decoupled bridge-to-shell communication.

Usage:
    bus = EventBus()

    async def on_token(event: StreamEvent) -> None:
        print(event.response)

    subscription = bus.local_stream.subscribe(on_token)
    await bus.local_stream.publish(StreamEvent(response="Hi"))
    subscription.close()
"""

from __future__ import annotations

from collections.abc import Callable
import inspect
import logging
from typing import Any, Generic, TypeVar

from .domain import (
    ContentSourceEvent,
    FaviconChangedEvent,
    ModelFallbackEvent,
    NavigationEvent,
    OpenSettingsEvent,
    StreamEvent,
    TitleChangedEvent,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`; ``close`` is idempotent."""

    def __init__(self, channel: EventChannel[Any], handler: Callable[..., Any]) -> None:
        self._channel = channel
        self._handler = handler
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._channel._remove(self._handler)


class EventChannel(Generic[T]):
    """A named stream of events of one payload type."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[[T], Any]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Callable[[T], Any]) -> Subscription:
        self._handlers.append(handler)
        LOGGER.debug(f"Subscribed to channel: {self.name}")
        return Subscription(self, handler)

    def _remove(self, handler: Callable[[T], Any]) -> None:
        try:
            self._handlers.remove(handler)
            LOGGER.debug(f"Unsubscribed from channel: {self.name}")
        except ValueError:
            pass

    async def publish(self, event: T) -> None:
        """Deliver ``event`` to every handler in subscription order."""
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                LOGGER.error(f"Event handler failed for {self.name}: {e}")

    def clear(self) -> None:
        self._handlers.clear()


class EventBus:
    """The fixed set of channels the bridge publishes on."""

    def __init__(self) -> None:
        self.local_stream: EventChannel[StreamEvent] = EventChannel("local_stream")
        self.remote_stream: EventChannel[StreamEvent] = EventChannel("remote_stream")
        self.content_source: EventChannel[ContentSourceEvent] = EventChannel("content_source")
        self.model_fallback: EventChannel[ModelFallbackEvent] = EventChannel("model_fallback")
        self.navigation: EventChannel[NavigationEvent] = EventChannel("navigation")
        self.title_changed: EventChannel[TitleChangedEvent] = EventChannel("title_changed")
        self.favicon_changed: EventChannel[FaviconChangedEvent] = EventChannel("favicon_changed")
        self.open_settings: EventChannel[OpenSettingsEvent] = EventChannel("open_settings")

    @property
    def channels(self) -> list[EventChannel[Any]]:
        return [
            self.local_stream,
            self.remote_stream,
            self.content_source,
            self.model_fallback,
            self.navigation,
            self.title_changed,
            self.favicon_changed,
            self.open_settings,
        ]

    def channel(self, name: str) -> EventChannel[Any]:
        for channel in self.channels:
            if channel.name == name:
                return channel
        raise KeyError(f"Unknown event channel: {name}")

    def close(self) -> None:
        """Drop every subscriber of every channel."""
        for channel in self.channels:
            channel.clear()
