"""Payloads published on the bridge event channels."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StreamEvent:
    """One fragment of a streamed answer.

    ``done`` marks the terminal event; ``error`` is set when generation failed.
    ``request_id`` echoes the id the question was dispatched with.
    """

    response: str = ""
    done: bool = False
    error: str | None = None
    request_id: int = 0


@dataclass(frozen=True)
class ContentSourceEvent:
    mode: str
    url: str
    source: str
    from_cache: bool = False
    length: int = 0
    preview: str = ""


@dataclass(frozen=True)
class ModelFallbackEvent:
    to: str


@dataclass(frozen=True)
class NavigationEvent:
    tab_id: str
    url: str


@dataclass(frozen=True)
class TitleChangedEvent:
    tab_id: str
    title: str


@dataclass(frozen=True)
class FaviconChangedEvent:
    tab_id: str
    favicon: str


@dataclass(frozen=True)
class OpenSettingsEvent:
    pass
