"""Page observation and assertion harness built on Playwright."""

from .errors import AssertionFailure, CollectionError, InteractionTimeout, PageAuditError, UnexpectedConsoleEvent
from .models import EventLog, EventLogEntry, ObservationSpec, PageSnapshot, RunReport, Verdict
from .rules import evaluate

__version__ = "0.1.0"

__all__ = [
    "PageAuditError",
    "CollectionError",
    "InteractionTimeout",
    "AssertionFailure",
    "UnexpectedConsoleEvent",
    "ObservationSpec",
    "PageSnapshot",
    "EventLog",
    "EventLogEntry",
    "Verdict",
    "RunReport",
    "evaluate",
]
