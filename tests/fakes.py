"""Shared fakes for shell and manager tests."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from pathlib import Path
from typing import Any

from pagechat.bridge.base import Bridge, ModelInfo, PageInfo, Shortcut, ShortcutDraft
from pagechat.config import DEFAULT_CONFIG
from pagechat.events import StreamEvent
from pagechat.exceptions import BridgeCallError
from pagechat.geometry import Rect


def make_config(base: Path | None = None, **sections: dict[str, Any]) -> dict[str, Any]:
    """Return a default config with fast timings and optional overrides."""
    config = deepcopy(DEFAULT_CONFIG)
    config["bridge"].update(startup_ping_attempts=1, startup_ping_delay_seconds=0.0)
    config["ui"].update(
        layout_debounce_seconds=0.0,
        metadata_retry_delay_seconds=0.0,
        navigation_refresh_delay_seconds=0.0,
        shortcut_autosave_delay_seconds=0.0,
    )
    if base is not None:
        config["persistence"].update(
            preferences_path=str(base / "preferences.json"),
            settings_path=str(base / "settings.json"),
            shortcuts_path=str(base / "shortcuts.json"),
        )
    for name, values in sections.items():
        config[name].update(values)
    return config


class FakeBridge(Bridge):
    """Records every call; commands listed in ``fail`` raise BridgeCallError."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.request_ids: list[int] = []
        self.fail: set[str] = set()
        self.ping_result = True
        self.local_models: list[ModelInfo] = [ModelInfo(name="llama3")]
        self.local_results: list[asyncio.Future[list[ModelInfo]]] = []
        self.remote_models: list[ModelInfo] = []
        self.page_info = PageInfo(title="Example Domain", favicon="https://example.com/favicon.ico")
        self.shortcut_rows: list[Shortcut] = []
        self.base_url = "http://localhost:11434"
        self.next_shortcut_id = 10

    def _record(self, command: str, *args: Any) -> None:
        self.calls.append((command, *args))
        if command in self.fail:
            raise BridgeCallError(command, f"{command} failed")

    def commands(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def emit(self, channel: Any, **fields: Any) -> None:
        """Publish a stream event tagged with the most recent request id."""
        request_id = self.request_ids[-1] if self.request_ids else 0
        await channel.publish(StreamEvent(request_id=request_id, **fields))

    async def ping(self) -> bool:
        self._record("ping")
        return self.ping_result

    async def open_or_navigate(self, tab_id: str, url: str) -> None:
        self._record("open_or_navigate", tab_id, url)

    async def show_only(self, tab_id: str) -> None:
        self._record("show_only", tab_id)

    async def reposition(self, tab_id: str, rect: Rect) -> None:
        self._record("reposition", tab_id, rect)

    async def hide_all(self) -> None:
        self._record("hide_all")

    async def navigate_back(self, tab_id: str) -> None:
        self._record("navigate_back", tab_id)

    async def navigate_forward(self, tab_id: str) -> None:
        self._record("navigate_forward", tab_id)

    async def reload(self, tab_id: str) -> None:
        self._record("reload", tab_id)

    async def clear_cache_for_url(self, url: str) -> None:
        self._record("clear_cache_for_url", url)

    async def get_page_info(self, tab_id: str, url: str) -> PageInfo:
        self._record("get_page_info", tab_id, url)
        return self.page_info

    async def list_local_models(self) -> list[ModelInfo]:
        self._record("list_local_models")
        if self.local_results:
            return await self.local_results.pop(0)
        return list(self.local_models)

    async def list_remote_models(self) -> list[ModelInfo]:
        self._record("list_remote_models")
        return list(self.remote_models)

    async def ask_local(self, url: str, question: str, model: str, request_id: int = 0) -> None:
        self._record("ask_local", url, question, model)
        self.request_ids.append(request_id)

    async def ask_remote(self, url: str, question: str, model: str, request_id: int = 0) -> None:
        self._record("ask_remote", url, question, model)
        self.request_ids.append(request_id)

    async def get_base_url(self) -> str:
        self._record("get_base_url")
        return self.base_url

    async def set_base_url(self, value: str) -> None:
        self._record("set_base_url", value)
        self.base_url = value

    async def get_shortcuts(self) -> list[Shortcut]:
        self._record("get_shortcuts")
        return [row.model_copy() for row in self.shortcut_rows]

    async def save_shortcut(self, draft: ShortcutDraft) -> int:
        self._record("save_shortcut", draft)
        if draft.id is not None:
            return draft.id
        shortcut_id = self.next_shortcut_id
        self.next_shortcut_id += 1
        self.shortcut_rows.append(Shortcut(id=shortcut_id, title=draft.title, url=draft.url))
        return shortcut_id

    async def delete_shortcut(self, shortcut_id: int) -> None:
        self._record("delete_shortcut", shortcut_id)
        self.shortcut_rows = [row for row in self.shortcut_rows if row.id != shortcut_id]

    async def reorder_shortcuts(self, ids: list[int]) -> None:
        self._record("reorder_shortcuts", list(ids))

    async def open_external(self, url: str) -> None:
        self._record("open_external", url)
