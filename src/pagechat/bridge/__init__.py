"""Asynchronous remote-call boundary between the shell and its backends."""

from __future__ import annotations

from typing import Any

from .base import Bridge, ModelInfo, PageInfo, Shortcut, ShortcutDraft
from .startup import wait_for_bridge

__all__ = [
    "Bridge",
    "InProcessBridge",
    "ModelInfo",
    "PageFetcher",
    "PageInfo",
    "Shortcut",
    "ShortcutDraft",
    "wait_for_bridge",
]


def __getattr__(name: str) -> Any:
    if name == "InProcessBridge":
        from .inprocess import InProcessBridge

        return InProcessBridge
    if name == "PageFetcher":
        from .pages import PageFetcher

        return PageFetcher
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
