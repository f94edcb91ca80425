"""Contract of the asynchronous remote-call bridge and its payload types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..geometry import Rect


def host_of(url: str) -> str:
    """Return the host name of ``url``, or an empty string when it has none."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


class PageInfo(BaseModel):
    """Authoritative page metadata for one session/url pair."""

    title: str = ""
    favicon: str = ""


class ModelInfo(BaseModel):
    """One entry of a backend's model listing."""

    model_config = ConfigDict(extra="ignore")

    name: str
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.name


class Shortcut(BaseModel):
    """A pinned shortcut tile; ``sort_order`` mirrors the persisted position."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    url: str
    color: str | None = None
    icon: str | None = None
    sort_order: int | None = None


class ShortcutDraft(BaseModel):
    """Editable shortcut fields; ``id`` is ``None`` until the backend assigns one."""

    id: int | None = None
    title: str = ""
    url: str = ""
    color: str | None = None
    icon: str | None = None
    sort_order: int | None = Field(default=None)

    @field_validator("title", "url", mode="before")
    @classmethod
    def _strip(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("color", "icon", mode="before")
    @classmethod
    def _empty_to_none(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def is_complete(self) -> bool:
        return bool(self.title and self.url)


class Bridge(ABC):
    """Remote calls consumed by the shell.

    Every method may suspend; implementations raise
    :class:`~pagechat.exceptions.BridgeCallError` on failure. Answers to
    ``ask_local``/``ask_remote`` are not returned: they arrive as stream
    events on the event bus, each carrying the ``request_id`` it was asked with.
    """

    @abstractmethod
    async def ping(self) -> bool:
        """Return True once the bridge accepts calls."""

    # Rendering surfaces.

    @abstractmethod
    async def open_or_navigate(self, tab_id: str, url: str) -> None: ...

    @abstractmethod
    async def show_only(self, tab_id: str) -> None:
        """Make the surface of ``tab_id`` the only visible one."""

    @abstractmethod
    async def reposition(self, tab_id: str, rect: Rect) -> None: ...

    @abstractmethod
    async def hide_all(self) -> None: ...

    @abstractmethod
    async def navigate_back(self, tab_id: str) -> None: ...

    @abstractmethod
    async def navigate_forward(self, tab_id: str) -> None: ...

    @abstractmethod
    async def reload(self, tab_id: str) -> None: ...

    # Page content.

    @abstractmethod
    async def clear_cache_for_url(self, url: str) -> None: ...

    @abstractmethod
    async def get_page_info(self, tab_id: str, url: str) -> PageInfo: ...

    # Answer backends.

    @abstractmethod
    async def list_local_models(self) -> list[ModelInfo]: ...

    @abstractmethod
    async def list_remote_models(self) -> list[ModelInfo]: ...

    @abstractmethod
    async def ask_local(self, url: str, question: str, model: str, request_id: int = 0) -> None: ...

    @abstractmethod
    async def ask_remote(self, url: str, question: str, model: str, request_id: int = 0) -> None: ...

    # Settings.

    @abstractmethod
    async def get_base_url(self) -> str: ...

    @abstractmethod
    async def set_base_url(self, value: str) -> None: ...

    # Pinned shortcuts.

    @abstractmethod
    async def get_shortcuts(self) -> list[Shortcut]: ...

    @abstractmethod
    async def save_shortcut(self, draft: ShortcutDraft) -> int: ...

    @abstractmethod
    async def delete_shortcut(self, shortcut_id: int) -> None: ...

    @abstractmethod
    async def reorder_shortcuts(self, ids: list[int]) -> None: ...

    @abstractmethod
    async def open_external(self, url: str) -> None: ...

    async def aclose(self) -> None:
        """Release transport resources."""
