"""Domain exception hierarchy for the PageChat shell."""

from __future__ import annotations


class PageChatError(RuntimeError):
    """Base class for all domain-level shell errors."""


class BridgeError(PageChatError):
    """Base class for failures at the remote-call boundary."""


class BridgeUnavailableError(BridgeError):
    """Raised when the bridge did not become available during startup."""


class BridgeCallError(BridgeError):
    """Raised when a remote call is rejected by the bridge or its backend."""

    def __init__(self, command: str, detail: str) -> None:
        super().__init__(detail)
        self.command = command
        self.detail = detail


class PreconditionError(PageChatError):
    """Raised when an operation is attempted without its required state."""


class ConfigValidationError(PageChatError):
    """Raised when configuration cannot be validated safely."""
