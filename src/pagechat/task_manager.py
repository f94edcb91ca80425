"""Structured lifecycle manager for asyncio background tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Manage named and anonymous background asyncio tasks.

    Besides plain tracking, the manager provides the two timing primitives the
    shell relies on: :meth:`debounce` (a named call that restarts its quiet
    period on every request) and :meth:`call_later` (a fire-once delayed call).
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register a task, optionally under a unique name.

        Named tasks replace any prior task with the same name (the old task
        is *not* cancelled automatically).  Anonymous tasks self-clean when
        they complete.
        """
        if name is not None:
            self._named[name] = task
        else:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)

    def spawn(self, coro: Awaitable[Any], name: str | None = None) -> asyncio.Task[Any]:
        """Create a task for ``coro`` and track it."""
        task = asyncio.ensure_future(coro)
        self.add(task, name=name)
        task.add_done_callback(self._log_failure)
        return task

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the named task or ``None`` if not registered."""
        return self._named.get(name)

    def debounce(
        self,
        name: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> asyncio.Task[Any]:
        """Run ``callback`` once ``delay_seconds`` pass without another request.

        A pending call under the same name is cancelled, so a burst of requests
        coalesces into a single call after the last one.
        """
        previous = self._named.pop(name, None)
        if previous is not None and not previous.done():
            previous.cancel()

        async def _run() -> None:
            await asyncio.sleep(delay_seconds)
            await callback()

        return self.spawn(_run(), name=name)

    def call_later(
        self,
        delay_seconds: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> asyncio.Task[Any]:
        """Run ``callback`` once after ``delay_seconds`` as an anonymous task."""

        async def _run() -> None:
            await asyncio.sleep(delay_seconds)
            await callback()

        return self.spawn(_run())

    async def cancel(self, name: str) -> None:
        """Cancel a named task and await its completion."""
        task = self._named.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        all_tasks: list[asyncio.Task[Any]] = list(self._named.values()) + [
            t for t in self._anonymous if not t.done()
        ]
        for task in all_tasks:
            if not task.done():
                task.cancel()
        for task in all_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - already logged by the done callback.
                pass
        self._named.clear()
        self._anonymous.clear()

    async def await_all(self) -> None:
        """Await all tracked tasks without cancelling them.

        Tasks spawned while waiting are awaited too, which lets tests drain
        chains such as an immediate fetch followed by a delayed retry.
        """
        while True:
            pending = [
                t
                for t in list(self._named.values()) + list(self._anonymous)
                if not t.done()
            ]
            if not pending:
                return
            for task in pending:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:  # noqa: BLE001 - already logged by the done callback.
                    pass

    def discard(self, name: str) -> None:
        """Remove a named task from tracking without cancelling it."""
        self._named.pop(name, None)

    @staticmethod
    def _log_failure(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "task.failed",
                extra={"event": "task.failed", "task": task.get_name(), "error": str(exc)},
            )
