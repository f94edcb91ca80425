"""Manager classes coordinating the shell's concerns.

Available managers:
- SessionRegistry: Tab lifecycle and rendering-surface visibility
- StreamCoordinator: Question dispatch and streamed answer assembly
- ModelSelector: Answer mode toggle and local model list
- SuggestionState: Directive suggestion menu
- ReorderProtocol: Drag reordering with persisted order
- ShortcutManager: Pinned shortcut tiles
- SettingsManager: Local endpoint and mode settings
"""

from __future__ import annotations

from .models import ModelSelector
from .reorder import (
    DragOutcome,
    DragStrategy,
    GridLayout,
    ImmediateDragStrategy,
    ListLayout,
    LongPressDragStrategy,
    ReorderProtocol,
    select_strategy,
)
from .sessions import Session, SessionRegistry
from .settings import SettingsManager
from .shortcuts import ShortcutManager
from .stream import EMPTY_RESPONSE_PLACEHOLDER, StreamCoordinator
from .suggestions import Suggestion, SuggestionState

__all__ = [
    "DragOutcome",
    "DragStrategy",
    "EMPTY_RESPONSE_PLACEHOLDER",
    "GridLayout",
    "ImmediateDragStrategy",
    "ListLayout",
    "LongPressDragStrategy",
    "ModelSelector",
    "ReorderProtocol",
    "Session",
    "SessionRegistry",
    "SettingsManager",
    "ShortcutManager",
    "StreamCoordinator",
    "Suggestion",
    "SuggestionState",
    "select_strategy",
]
