"""Error taxonomy.

Every failure the user can see is a subclass of `LlmSendError` with a stable
`code` (rendered in CLI JSON output) and the process `exit_code` it maps to.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

EXIT_OK = 0
EXIT_PANE_NOT_FOUND = 1
EXIT_HISTORY_EXHAUSTED = 2
EXIT_TRANSPORT = 3
EXIT_SOURCE = 4


class LlmSendError(RuntimeError):
    code = "error"
    exit_code = EXIT_TRANSPORT

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class AddressError(LlmSendError):
    """Role not bound in this scope, or the bound pane no longer exists."""

    code = "address_not_found"
    exit_code = EXIT_PANE_NOT_FOUND


class TransportError(LlmSendError):
    code = "transport_error"
    exit_code = EXIT_TRANSPORT


class PaneUnavailableError(TransportError):
    code = "pane_unavailable"


class SendInProgressError(TransportError):
    code = "send_in_progress"


class ConfigError(LlmSendError):
    code = "config_error"
    exit_code = EXIT_TRANSPORT


class EmptyHistoryError(LlmSendError):
    code = "empty_history"
    exit_code = EXIT_HISTORY_EXHAUSTED


class ExtractionRangeError(LlmSendError):
    code = "history_exhausted"
    exit_code = EXIT_HISTORY_EXHAUSTED

    def __init__(self, message: str, *, requested: int, available: int):
        super().__init__(message, details={"requested": requested, "available": available})
        self.requested = requested
        self.available = available


class SourceReadError(LlmSendError):
    """The prompt source (file or stdin) could not be read as UTF-8 text."""

    code = "source_unreadable"
    exit_code = EXIT_SOURCE


class StaleCacheRebuildFailure(LlmSendError):
    """Internal: the cache could not be rebuilt; callers fall back to a plain scan."""

    code = "cache_rebuild_failed"


class SubmitNotAcknowledged(UserWarning):
    """Payload delivered but the pane output did not change after the submit key."""
