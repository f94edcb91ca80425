"""Top-level package for pagechat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import PageChatApp
    from .config import ensure_config_dir, load_config
    from .events import EventBus
    from .exceptions import (
        BridgeCallError,
        BridgeError,
        BridgeUnavailableError,
        ConfigValidationError,
        PageChatError,
        PreconditionError,
    )
    from .shell import Shell
    from .state import AnswerMode, BridgeStatus, ConversationState, StateManager

__all__ = [
    "AnswerMode",
    "BridgeCallError",
    "BridgeError",
    "BridgeStatus",
    "BridgeUnavailableError",
    "ConfigValidationError",
    "ConversationState",
    "EventBus",
    "PageChatApp",
    "PageChatError",
    "PreconditionError",
    "Shell",
    "StateManager",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep the UI dependencies optional at import time."""
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {
        "BridgeCallError",
        "BridgeError",
        "BridgeUnavailableError",
        "ConfigValidationError",
        "PageChatError",
        "PreconditionError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"AnswerMode", "BridgeStatus", "ConversationState", "StateManager"}:
        from . import state

        return getattr(state, name)
    if name == "EventBus":
        from .events import EventBus

        return EventBus
    if name == "Shell":
        from .shell import Shell

        return Shell
    if name == "PageChatApp":
        from .app import PageChatApp

        return PageChatApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
