"""Browsing sessions ("tabs") and their rendering-surface synchronization."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import random
import string
from typing import Any
from urllib.parse import quote_plus

from ..bridge.base import Bridge, host_of
from ..context import ShellContext
from ..events import (
    EventBus,
    FaviconChangedEvent,
    NavigationEvent,
    Subscription,
    TitleChangedEvent,
)
from ..geometry import Rect
from ..task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

DEFAULT_TITLE = "New Tab"
SEARCH_URL = "https://www.google.com/search?q="

GeometryProvider = Callable[[], Rect | None]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def random_session_id() -> str:
    return "tab-" + "".join(random.choices(_ID_ALPHABET, k=6))


def normalize_url(url: str) -> str:
    """Prefix ``https://`` unless the url already carries a web scheme."""
    value = url.strip()
    if not value:
        return ""
    if value.startswith(("http://", "https://")):
        return value
    return f"https://{value}"


def resolve_address_input(text: str) -> str:
    """Turn address-bar input into a url; anything that isn't one becomes a search."""
    value = text.strip()
    if not value:
        return ""
    if value.startswith(("http://", "https://")) or ("." in value and " " not in value):
        return normalize_url(value)
    return SEARCH_URL + quote_plus(value)


@dataclass
class Session:
    id: str
    title: str = DEFAULT_TITLE
    url: str = ""
    favicon: str = ""


class SessionRegistry:
    """Ordered sessions with exactly one active entry (or none).

    The active id is always empty or a member of the registry; each change of
    the active session is mirrored to the bridge with a visibility command.
    """

    def __init__(
        self,
        context: ShellContext,
        bridge: Bridge,
        task_manager: TaskManager,
        *,
        geometry_provider: GeometryProvider | None = None,
        layout_debounce_seconds: float = 0.05,
        metadata_retry_delay_seconds: float = 3.0,
        navigation_refresh_delay_seconds: float = 1.0,
        id_factory: Callable[[], str] = random_session_id,
    ) -> None:
        self.context = context
        self.bridge = bridge
        self.tasks = task_manager
        self.geometry_provider = geometry_provider
        self.layout_debounce_seconds = layout_debounce_seconds
        self.metadata_retry_delay_seconds = metadata_retry_delay_seconds
        self.navigation_refresh_delay_seconds = navigation_refresh_delay_seconds
        self._id_factory = id_factory
        self._sessions: list[Session] = []
        self._issued: set[str] = set()
        self._active_id: str | None = None
        self._listeners: list[Callable[[], None]] = []

    # Queries.

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def ids(self) -> list[str]:
        return [session.id for session in self._sessions]

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active(self) -> Session | None:
        return self.get(self._active_id) if self._active_id else None

    def get(self, tab_id: str | None) -> Session | None:
        for session in self._sessions:
            if session.id == tab_id:
                return session
        return None

    def _index_of(self, tab_id: str) -> int | None:
        for index, session in enumerate(self._sessions):
            if session.id == tab_id:
                return index
        return None

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register callback invoked whenever sessions or the active id change."""
        self._listeners.append(callback)

    def _emit(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as exc:  # noqa: BLE001 - listeners are UI code.
                LOGGER.error(f"Session listener failed: {exc}")

    async def _call(self, command: str, awaitable: Any, **fields: Any) -> bool:
        """Await a bridge call, logging instead of raising on failure."""
        try:
            await awaitable
        except Exception as exc:  # noqa: BLE001 - bridge failures are logged only.
            LOGGER.warning(
                "sessions.bridge_call_failed",
                extra={
                    "event": "sessions.bridge_call_failed",
                    "command": command,
                    "error": str(exc),
                    **fields,
                },
            )
            return False
        return True

    def _new_id(self) -> str:
        tab_id = self._id_factory()
        while tab_id in self._issued:
            tab_id = self._id_factory()
        self._issued.add(tab_id)
        return tab_id

    # Lifecycle.

    async def create(self) -> str:
        """Append a fresh session, activate it and show the home view."""
        tab_id = self._new_id()
        self._sessions.append(Session(id=tab_id))
        self._active_id = tab_id
        self.context.set_address("")
        self.context.set_home_visible(True)
        await self._call("show_only", self.bridge.show_only(tab_id), tab_id=tab_id)
        LOGGER.info("sessions.created", extra={"event": "sessions.created", "tab_id": tab_id})
        self._emit()
        return tab_id

    async def ensure_active(self) -> str:
        if self._active_id is not None:
            return self._active_id
        return await self.create()

    async def switch_to(self, tab_id: str) -> None:
        session = self.get(tab_id)
        if session is None:
            return
        self._active_id = tab_id
        self.context.set_address(session.url)
        self.context.set_home_visible(not session.url)
        await self._call("show_only", self.bridge.show_only(tab_id), tab_id=tab_id)
        self.request_layout_refresh()
        self._emit()

    async def close(self, tab_id: str) -> None:
        """Remove a session, purge its cached content and pick a fallback."""
        index = self._index_of(tab_id)
        if index is None:
            return
        session = self._sessions[index]
        if session.url:
            await self._call(
                "clear_cache_for_url",
                self.bridge.clear_cache_for_url(session.url),
                tab_id=tab_id,
            )
        del self._sessions[index]
        LOGGER.info("sessions.closed", extra={"event": "sessions.closed", "tab_id": tab_id})

        if self._active_id != tab_id:
            self._emit()
            return
        if not self._sessions:
            self._active_id = None
            await self.go_home()
            self._emit()
            return
        fallback = self._sessions[index] if index < len(self._sessions) else self._sessions[index - 1]
        await self.switch_to(fallback.id)

    async def go_home(self) -> None:
        """Show the home view and hide every rendering surface."""
        self.context.set_home_visible(True)
        self.context.set_address("")
        self.context.set_page_status("ready")
        await self._call("hide_all", self.bridge.hide_all())

    async def reorder(self, ids: list[str]) -> None:
        if sorted(ids) != sorted(self.ids):
            raise ValueError("Reorder ids must match the current sessions.")
        by_id = {session.id: session for session in self._sessions}
        self._sessions = [by_id[tab_id] for tab_id in ids]
        self._emit()

    async def move(self, tab_id: str, offset: int) -> bool:
        """Shift one tab by ``offset`` places, clamped to the ends of the strip."""
        ids = self.ids
        if tab_id not in ids:
            return False
        index = ids.index(tab_id)
        target = max(0, min(len(ids) - 1, index + offset))
        if target == index:
            return False
        ids.insert(target, ids.pop(index))
        await self.reorder(ids)
        return True

    # Navigation.

    async def navigate(self, url: str, tab_id: str | None = None) -> bool:
        """Load ``url`` into ``tab_id`` (the active session by default).

        The session url is set before the bridge confirms it and is not
        reverted when loading fails.
        """
        target = normalize_url(url)
        if not target:
            return False
        if tab_id is None or self.get(tab_id) is None:
            tab_id = await self.ensure_active()
        session = self.get(tab_id)
        if session is None:
            return False

        session.url = target
        self._active_id = tab_id
        self.context.set_address(target)
        self.context.set_home_visible(False)
        self.context.set_page_status("loading")
        self._emit()

        try:
            await self.bridge.open_or_navigate(tab_id, target)
            if self._is_abandoned(tab_id, target):
                return False
            if self._active_id == tab_id:
                await self.bridge.show_only(tab_id)
        except Exception as exc:  # noqa: BLE001 - reported to the user as a chat turn.
            LOGGER.error(
                "sessions.navigate_failed",
                extra={
                    "event": "sessions.navigate_failed",
                    "tab_id": tab_id,
                    "url": target,
                    "error": str(exc),
                },
            )
            self.context.transcript.add_system(f"Failed to load URL: {exc}")
            if self._active_id == tab_id:
                await self.go_home()
                self.context.set_page_status("error")
            return False

        if self._is_abandoned(tab_id, target):
            return False
        if self._active_id == tab_id:
            self.context.set_page_status("ready")
            self.request_layout_refresh()
        self.tasks.spawn(self.refresh_page_info(tab_id, target))
        self.tasks.call_later(
            self.metadata_retry_delay_seconds,
            lambda: self.refresh_page_info(tab_id, target),
        )
        return True

    def _is_abandoned(self, tab_id: str, url: str) -> bool:
        """True when the tab was closed while its page was loading."""
        if self.get(tab_id) is not None:
            return False
        LOGGER.info(
            "sessions.navigate_abandoned",
            extra={"event": "sessions.navigate_abandoned", "tab_id": tab_id, "url": url},
        )
        return True

    async def back(self) -> None:
        if self._active_id is not None:
            await self._call("navigate_back", self.bridge.navigate_back(self._active_id))

    async def forward(self) -> None:
        if self._active_id is not None:
            await self._call("navigate_forward", self.bridge.navigate_forward(self._active_id))

    async def reload(self) -> None:
        if self._active_id is not None:
            await self._call("reload", self.bridge.reload(self._active_id))

    async def refresh_page_info(self, tab_id: str, url: str) -> None:
        """Fetch authoritative title and favicon; fall back to the url host."""
        try:
            info = await self.bridge.get_page_info(tab_id, url)
        except Exception as exc:  # noqa: BLE001 - metadata is best effort.
            LOGGER.warning(
                "sessions.metadata_failed",
                extra={
                    "event": "sessions.metadata_failed",
                    "tab_id": tab_id,
                    "url": url,
                    "error": str(exc),
                },
            )
            session = self.get(tab_id)
            host = host_of(url)
            if session is not None and host:
                session.title = host
                self._emit()
            return

        session = self.get(tab_id)
        if session is None:
            return
        session.title = info.title or host_of(url) or DEFAULT_TITLE
        session.favicon = info.favicon or ""
        session.url = url
        self._emit()

    # Layout.

    def request_layout_refresh(self) -> None:
        """Coalesce bursts of layout changes into one reposition call."""
        self.tasks.debounce("layout", self.layout_debounce_seconds, self.apply_layout)

    async def apply_layout(self) -> None:
        session = self.active
        if session is None or not session.url or self.context.home_visible:
            return
        if self.geometry_provider is None:
            return
        rect = self.geometry_provider()
        if rect is None:
            return
        await self._call(
            "reposition",
            self.bridge.reposition(session.id, rect.rounded()),
            tab_id=session.id,
        )

    # Inbound events.

    def subscribe(self, bus: EventBus) -> list[Subscription]:
        return [
            bus.title_changed.subscribe(self._on_title_changed),
            bus.favicon_changed.subscribe(self._on_favicon_changed),
            bus.navigation.subscribe(self._on_navigation),
        ]

    def _on_title_changed(self, event: TitleChangedEvent) -> None:
        session = self.get(event.tab_id)
        if session is None or not event.title:
            return
        session.title = event.title
        self._emit()

    def _on_favicon_changed(self, event: FaviconChangedEvent) -> None:
        session = self.get(event.tab_id)
        if session is None or not event.favicon:
            return
        session.favicon = event.favicon
        self._emit()

    def _on_navigation(self, event: NavigationEvent) -> None:
        session = self.get(event.tab_id)
        if session is None or not event.url:
            return
        session.url = event.url
        if event.tab_id == self._active_id:
            self.context.set_address(event.url)
            self.context.set_home_visible(False)
            self.tasks.call_later(
                self.navigation_refresh_delay_seconds,
                lambda: self.refresh_page_info(event.tab_id, event.url),
            )
        self._emit()
