"""Bounded startup ping of the remote-call bridge."""

from __future__ import annotations

import asyncio
import logging

from ..state import BridgeStatus
from .base import Bridge

LOGGER = logging.getLogger(__name__)


async def wait_for_bridge(bridge: Bridge, attempts: int = 20, delay_seconds: float = 0.5) -> BridgeStatus:
    """Ping ``bridge`` until it answers or ``attempts`` are exhausted.

    Never raises: exhausted attempts yield :attr:`BridgeStatus.DEGRADED`.
    """
    for attempt in range(1, max(1, attempts) + 1):
        try:
            if await bridge.ping():
                LOGGER.info(
                    "bridge.ready",
                    extra={"event": "bridge.ready", "attempt": attempt},
                )
                return BridgeStatus.READY
        except Exception as exc:  # noqa: BLE001 - any ping failure means "not yet".
            LOGGER.debug(
                "bridge.ping_failed",
                extra={"event": "bridge.ping_failed", "attempt": attempt, "error": str(exc)},
            )
        if attempt < attempts:
            await asyncio.sleep(delay_seconds)

    LOGGER.error(
        "bridge.unavailable",
        extra={"event": "bridge.unavailable", "attempts": attempts},
    )
    return BridgeStatus.DEGRADED
