"""Error taxonomy for page audits."""

from __future__ import annotations

from typing import Any


class PageAuditError(Exception):
    """Base class for all harness errors."""


class CollectionError(PageAuditError):
    """The page handle is unusable (closed, or navigation never completed)."""

    def __init__(self, message: str, *, url: str | None = None):
        super().__init__(message)
        self.url = url


class InteractionTimeout(PageAuditError):
    """A click or other interaction exceeded its bounded wait."""

    def __init__(self, target: str, timeout_ms: int, cause: str | None = None):
        message = f"{target}: no response within {timeout_ms}ms"
        if cause:
            message = f"{message} ({cause})"
        super().__init__(message)
        self.target = target
        self.timeout_ms = timeout_ms


class AssertionFailure(PageAuditError, AssertionError):
    """One or more verdicts failed."""

    def __init__(self, message: str, verdicts: tuple[Any, ...] = ()):
        super().__init__(message)
        self.verdicts = verdicts


class UnexpectedConsoleEvent(PageAuditError, AssertionError):
    """Recorded console/page events exceeded an allowed-count threshold."""

    def __init__(self, message: str, entries: tuple[Any, ...] = ()):
        super().__init__(message)
        self.entries = entries
