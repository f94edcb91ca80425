"""Tests for the session registry and its bridge synchronization."""

from __future__ import annotations

import asyncio
import itertools
import unittest

from fakes import FakeBridge

from pagechat.bridge.base import PageInfo, host_of
from pagechat.context import ShellContext
from pagechat.events import EventBus, FaviconChangedEvent, NavigationEvent, TitleChangedEvent
from pagechat.geometry import Rect
from pagechat.managers.sessions import (
    DEFAULT_TITLE,
    SessionRegistry,
    normalize_url,
    resolve_address_input,
)
from pagechat.task_manager import TaskManager


class GatedBridge(FakeBridge):
    """Bridge whose page loads and metadata lookups wait until released."""

    def __init__(self) -> None:
        super().__init__()
        self.load_gate = asyncio.Event()
        self.info_gate = asyncio.Event()
        self.load_gate.set()
        self.info_gate.set()

    async def open_or_navigate(self, tab_id: str, url: str) -> None:
        await super().open_or_navigate(tab_id, url)
        await self.load_gate.wait()

    async def get_page_info(self, tab_id: str, url: str) -> PageInfo:
        info = await super().get_page_info(tab_id, url)
        await self.info_gate.wait()
        return info


class SessionRegistryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.bridge = GatedBridge()
        self.context = ShellContext()
        self.tasks = TaskManager()
        counter = itertools.count(1)
        self.registry = SessionRegistry(
            self.context,
            self.bridge,
            self.tasks,
            geometry_provider=lambda: Rect(10.4, 2.6, 80.2, 20.5),
            layout_debounce_seconds=0.0,
            metadata_retry_delay_seconds=0.0,
            navigation_refresh_delay_seconds=0.0,
            id_factory=lambda: f"tab-{next(counter)}",
        )

    async def asyncTearDown(self) -> None:
        await self.tasks.cancel_all()

    def _assert_active_valid(self) -> None:
        active = self.registry.active_id
        self.assertTrue(active is None or active in self.registry.ids)

    async def test_create_activates_and_shows_home(self) -> None:
        tab_id = await self.registry.create()
        self.assertEqual(tab_id, "tab-1")
        self.assertEqual(self.registry.active_id, tab_id)
        self.assertTrue(self.context.home_visible)
        self.assertEqual(self.context.address, "")
        self.assertEqual(self.bridge.calls[-1], ("show_only", "tab-1"))
        self.assertEqual(self.registry.active.title, DEFAULT_TITLE)

    async def test_ids_are_never_reused(self) -> None:
        ids = iter(["tab-a", "tab-a", "tab-b"])
        registry = SessionRegistry(self.context, self.bridge, self.tasks, id_factory=lambda: next(ids))
        first = await registry.create()
        await registry.close(first)
        second = await registry.create()
        self.assertEqual((first, second), ("tab-a", "tab-b"))

    async def test_close_active_falls_back_to_same_index(self) -> None:
        for _ in range(3):
            await self.registry.create()
        await self.registry.switch_to("tab-2")
        await self.registry.close("tab-2")
        self.assertEqual(self.registry.ids, ["tab-1", "tab-3"])
        self.assertEqual(self.registry.active_id, "tab-3")
        self._assert_active_valid()

    async def test_close_last_active_falls_back_to_previous(self) -> None:
        for _ in range(3):
            await self.registry.create()
        await self.registry.close("tab-3")
        self.assertEqual(self.registry.active_id, "tab-2")
        self._assert_active_valid()

    async def test_close_inactive_keeps_active(self) -> None:
        for _ in range(2):
            await self.registry.create()
        await self.registry.close("tab-1")
        self.assertEqual(self.registry.active_id, "tab-2")

    async def test_close_only_session_goes_home(self) -> None:
        tab_id = await self.registry.create()
        await self.registry.navigate("https://example.com", tab_id)
        await self.tasks.await_all()
        await self.registry.close(tab_id)
        self.assertIsNone(self.registry.active_id)
        self.assertEqual(self.registry.ids, [])
        self.assertTrue(self.context.home_visible)
        self.assertIn(("clear_cache_for_url", "https://example.com"), self.bridge.calls)
        self.assertEqual(self.bridge.commands()[-1], "hide_all")

    async def test_close_unknown_is_noop(self) -> None:
        await self.registry.create()
        await self.registry.close("tab-99")
        self.assertEqual(self.registry.ids, ["tab-1"])

    async def test_navigate_creates_session_when_none_active(self) -> None:
        ok = await self.registry.navigate("example.com")
        await self.tasks.await_all()
        self.assertTrue(ok)
        session = self.registry.active
        assert session is not None
        self.assertEqual(session.url, "https://example.com")
        self.assertEqual(session.title, "Example Domain")
        self.assertEqual(session.favicon, "https://example.com/favicon.ico")
        self.assertFalse(self.context.home_visible)
        self.assertEqual(self.context.page_status, "ready")
        self.assertIn(("open_or_navigate", session.id, "https://example.com"), self.bridge.calls)

    async def test_navigate_refreshes_layout_with_rounded_rect(self) -> None:
        await self.registry.navigate("https://example.com")
        await self.tasks.await_all()
        repositions = [call for call in self.bridge.calls if call[0] == "reposition"]
        self.assertEqual(repositions, [("reposition", "tab-1", Rect(10, 3, 80, 20))])

    async def test_failed_navigation_reports_and_goes_home(self) -> None:
        self.bridge.fail.add("open_or_navigate")
        ok = await self.registry.navigate("https://broken.example")
        self.assertFalse(ok)
        self.assertEqual(self.context.page_status, "error")
        self.assertTrue(self.context.home_visible)
        last = self.context.transcript.turns[-1]
        self.assertEqual(last.role, "system")
        self.assertTrue(last.text.startswith("Failed to load URL:"))
        # The optimistic url is not reverted.
        self.assertEqual(self.registry.get("tab-1").url, "https://broken.example")

    async def test_metadata_failure_falls_back_to_host(self) -> None:
        self.bridge.fail.add("get_page_info")
        await self.registry.navigate("https://docs.python.org/3/")
        await self.tasks.await_all()
        self.assertEqual(self.registry.active.title, "docs.python.org")

    async def test_switch_to_restores_address(self) -> None:
        first = await self.registry.create()
        await self.registry.navigate("https://example.com", first)
        second = await self.registry.create()
        self.assertTrue(self.context.home_visible)
        await self.registry.switch_to(first)
        self.assertEqual(self.context.address, "https://example.com")
        self.assertFalse(self.context.home_visible)
        await self.registry.switch_to(second)
        self.assertEqual(self.context.address, "")

    async def test_move_shifts_tab_and_clamps_at_ends(self) -> None:
        for _ in range(3):
            await self.registry.create()
        changes: list[list[str]] = []
        self.registry.on_change(lambda: changes.append(self.registry.ids))

        self.assertTrue(await self.registry.move("tab-1", 1))
        self.assertEqual(self.registry.ids, ["tab-2", "tab-1", "tab-3"])
        self.assertTrue(await self.registry.move("tab-1", 5))
        self.assertEqual(self.registry.ids, ["tab-2", "tab-3", "tab-1"])
        self.assertFalse(await self.registry.move("tab-1", 1))
        self.assertFalse(await self.registry.move("tab-9", -1))
        self.assertEqual(len(changes), 2)
        self.assertEqual(self.registry.active_id, "tab-3")

    async def test_reorder_requires_same_ids(self) -> None:
        for _ in range(3):
            await self.registry.create()
        await self.registry.reorder(["tab-3", "tab-1", "tab-2"])
        self.assertEqual(self.registry.ids, ["tab-3", "tab-1", "tab-2"])
        with self.assertRaises(ValueError):
            await self.registry.reorder(["tab-1"])

    async def test_bridge_failures_in_navigation_commands_are_logged(self) -> None:
        await self.registry.create()
        self.bridge.fail.add("navigate_back")
        with self.assertLogs("pagechat.managers.sessions", level="WARNING"):
            await self.registry.back()

    async def test_inbound_events_update_sessions(self) -> None:
        bus = EventBus()
        self.registry.subscribe(bus)
        first = await self.registry.create()
        second = await self.registry.create()
        await bus.title_changed.publish(TitleChangedEvent(tab_id=first, title="Docs"))
        await bus.navigation.publish(NavigationEvent(tab_id=first, url="https://a.example"))
        self.assertEqual(self.registry.get(first).title, "Docs")
        self.assertEqual(self.registry.get(first).url, "https://a.example")
        # Only the active tab drives the address bar.
        self.assertEqual(self.registry.active_id, second)
        self.assertEqual(self.context.address, "")
        await bus.navigation.publish(NavigationEvent(tab_id=second, url="https://b.example"))
        self.assertEqual(self.context.address, "https://b.example")
        await bus.title_changed.publish(TitleChangedEvent(tab_id="tab-99", title="ghost"))
        self.assertEqual(len(self.registry.ids), 2)

    async def _settle(self) -> None:
        for _ in range(5):
            await asyncio.sleep(0)

    async def test_closing_tab_while_it_loads_keeps_fallback_visible(self) -> None:
        first = await self.registry.create()
        second = await self.registry.create()
        self.bridge.load_gate.clear()
        loading = asyncio.create_task(self.registry.navigate("https://example.com", second))
        await self._settle()
        await self.registry.close(second)
        self.bridge.load_gate.set()

        self.assertFalse(await loading)
        await self.tasks.await_all()
        shown = [call for call in self.bridge.calls if call[0] == "show_only"]
        self.assertEqual(shown[-1], ("show_only", first))
        self.assertEqual(self.registry.active_id, first)
        self.assertEqual(self.registry.ids, [first])
        self.assertNotIn("get_page_info", self.bridge.commands())
        self._assert_active_valid()

    async def test_switching_away_while_loading_does_not_steal_visibility(self) -> None:
        first = await self.registry.create()
        second = await self.registry.create()
        self.bridge.load_gate.clear()
        loading = asyncio.create_task(self.registry.navigate("https://example.com", second))
        await self._settle()
        await self.registry.switch_to(first)
        self.bridge.load_gate.set()

        self.assertTrue(await loading)
        await self.tasks.await_all()
        shown = [call for call in self.bridge.calls if call[0] == "show_only"]
        self.assertEqual(shown[-1], ("show_only", first))
        self.assertEqual(self.registry.active_id, first)
        self.assertTrue(self.context.home_visible)
        self.assertEqual(self.registry.get(second).title, "Example Domain")

    async def test_late_events_for_closed_session_are_dropped(self) -> None:
        bus = EventBus()
        self.registry.subscribe(bus)
        first = await self.registry.create()
        second = await self.registry.create()
        await self.registry.close(second)

        await bus.title_changed.publish(TitleChangedEvent(tab_id=second, title="late"))
        await bus.favicon_changed.publish(FaviconChangedEvent(tab_id=second, favicon="late.ico"))
        await bus.navigation.publish(NavigationEvent(tab_id=second, url="https://late.example"))
        await self.tasks.await_all()

        self.assertEqual(self.registry.ids, [first])
        self.assertEqual(self.registry.get(first).title, DEFAULT_TITLE)
        self.assertEqual(self.context.address, "")
        self.assertNotIn("get_page_info", self.bridge.commands())

    async def test_late_metadata_for_closed_session_is_dropped(self) -> None:
        first = await self.registry.create()
        second = await self.registry.create()
        self.bridge.info_gate.clear()
        fetch = asyncio.create_task(self.registry.refresh_page_info(second, "https://example.com"))
        await self._settle()
        await self.registry.close(second)
        self.bridge.info_gate.set()
        await fetch

        self.assertIsNone(self.registry.get(second))
        self.assertEqual(self.registry.get(first).title, DEFAULT_TITLE)
        self.assertEqual(self.registry.ids, [first])

    async def test_failed_metadata_for_closed_session_is_dropped(self) -> None:
        first = await self.registry.create()
        second = await self.registry.create()
        await self.registry.close(second)
        self.bridge.fail.add("get_page_info")
        with self.assertLogs("pagechat.managers.sessions", level="WARNING"):
            await self.registry.refresh_page_info(second, "https://example.com")
        self.assertEqual(self.registry.ids, [first])
        self.assertEqual(self.registry.get(first).title, DEFAULT_TITLE)



class AddressInputTests(unittest.TestCase):
    def test_normalize_url(self) -> None:
        self.assertEqual(normalize_url("example.com"), "https://example.com")
        self.assertEqual(normalize_url("http://example.com"), "http://example.com")
        self.assertEqual(normalize_url("   "), "")

    def test_resolve_address_input(self) -> None:
        self.assertEqual(resolve_address_input("python.org"), "https://python.org")
        self.assertEqual(
            resolve_address_input("what is asyncio"),
            "https://www.google.com/search?q=what+is+asyncio",
        )
        self.assertEqual(resolve_address_input(""), "")

    def test_host_of_handles_malformed_urls(self) -> None:
        self.assertEqual(host_of("https://Example.com/path"), "example.com")
        self.assertEqual(host_of("not a url"), "")
        self.assertEqual(host_of("http://[::1"), "")


if __name__ == "__main__":
    unittest.main()
