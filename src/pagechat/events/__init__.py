"""Event channels connecting the bridge to the shell."""

from .bus import EventBus, EventChannel, Subscription
from .domain import (
    ContentSourceEvent,
    FaviconChangedEvent,
    ModelFallbackEvent,
    NavigationEvent,
    OpenSettingsEvent,
    StreamEvent,
    TitleChangedEvent,
)

__all__ = [
    "ContentSourceEvent",
    "EventBus",
    "EventChannel",
    "FaviconChangedEvent",
    "ModelFallbackEvent",
    "NavigationEvent",
    "OpenSettingsEvent",
    "StreamEvent",
    "Subscription",
    "TitleChangedEvent",
]
