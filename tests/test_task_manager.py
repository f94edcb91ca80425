"""Tests for the TaskManager lifecycle and timing helpers."""

from __future__ import annotations

import asyncio
import unittest

from pagechat.task_manager import TaskManager


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named and anonymous task lifecycle management."""

    async def test_add_named_and_cancel_by_name(self) -> None:
        tm = TaskManager()
        cancelled: list[bool] = []

        async def _worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = asyncio.create_task(_worker())
        tm.add(task, name="my_task")
        await asyncio.sleep(0)  # Let the task start.
        self.assertIs(tm.get("my_task"), task)

        await tm.cancel("my_task")
        self.assertTrue(task.done())
        self.assertTrue(cancelled)
        self.assertIsNone(tm.get("my_task"))

    async def test_cancel_nonexistent_name_is_noop(self) -> None:
        tm = TaskManager()
        await tm.cancel("does_not_exist")

    async def test_cancel_all_handles_mixed_tasks(self) -> None:
        tm = TaskManager()
        results: list[str] = []

        async def _worker(label: str) -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                results.append(label)
                raise

        tm.spawn(_worker("named"), name="n1")
        tm.spawn(_worker("anon"))
        await asyncio.sleep(0)  # Let the tasks start.
        await tm.cancel_all()
        self.assertCountEqual(results, ["named", "anon"])

    async def test_debounce_coalesces_bursts(self) -> None:
        tm = TaskManager()
        calls: list[int] = []

        async def _callback() -> None:
            calls.append(len(calls))

        for _ in range(5):
            tm.debounce("layout", 0.01, _callback)
        await tm.await_all()
        self.assertEqual(calls, [0])

    async def test_debounce_restarts_quiet_period(self) -> None:
        tm = TaskManager()
        calls: list[str] = []

        async def _first() -> None:
            calls.append("first")

        async def _second() -> None:
            calls.append("second")

        tm.debounce("save", 0.05, _first)
        await asyncio.sleep(0.01)
        tm.debounce("save", 0.05, _second)
        await tm.await_all()
        self.assertEqual(calls, ["second"])

    async def test_call_later_runs_once_after_delay(self) -> None:
        tm = TaskManager()
        calls: list[str] = []

        async def _callback() -> None:
            calls.append("done")

        tm.call_later(0.01, _callback)
        self.assertEqual(calls, [])
        await tm.await_all()
        self.assertEqual(calls, ["done"])

    async def test_await_all_drains_chained_tasks(self) -> None:
        tm = TaskManager()
        calls: list[str] = []

        async def _second() -> None:
            calls.append("second")

        async def _first() -> None:
            calls.append("first")
            tm.call_later(0.0, _second)

        tm.spawn(_first())
        await tm.await_all()
        self.assertEqual(calls, ["first", "second"])

    async def test_failed_task_is_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise RuntimeError("boom")

        with self.assertLogs("pagechat.task_manager", level="ERROR") as logs:
            tm.spawn(_boom(), name="boom")
            await tm.await_all()
            await asyncio.sleep(0)
        self.assertTrue(any("task.failed" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
