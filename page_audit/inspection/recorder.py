"""Console and page-error recording.

Playwright delivers console/pageerror events only to listeners registered at
emission time, so a recorder must be started before `page.goto`.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import structlog

from page_audit.models import EventLog, EventLogEntry

logger = structlog.get_logger(__name__)


class RecordingHandle:
    """Live recording attached to one page. Obtained from EventRecorder.start()."""

    def __init__(self, page: Any, clock: Callable[[], float]):
        self.page = page
        self._clock = clock
        self._entries: list[EventLogEntry] = []
        self.state = "armed"
        self.log: EventLog | None = None

    @property
    def active(self) -> bool:
        return self.state in ("armed", "recording")

    def _append(self, kind: str, text: str) -> None:
        self._entries.append(EventLogEntry(kind=kind, text=text, timestamp=self._clock()))
        self.state = "recording"

    def on_console(self, msg: Any) -> None:
        self._append(str(msg.type), str(msg.text))

    def on_page_error(self, error: Any) -> None:
        message = getattr(error, "message", None)
        self._append("pageerror", str(message if message is not None else error))

    def snapshot(self) -> EventLog:
        return EventLog(entries=tuple(self._entries))

    def clear(self) -> None:
        self._entries = []


class EventRecorder:
    """Subscribes to console and page-error events for the lifetime of one test."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.time

    def start(self, page: Any) -> RecordingHandle:
        handle = RecordingHandle(page, self._clock)
        page.on("console", handle.on_console)
        page.on("pageerror", handle.on_page_error)
        logger.debug("Event recorder armed")
        return handle

    def stop(self, handle: RecordingHandle) -> EventLog:
        if not handle.active:
            raise RuntimeError("recording already stopped")
        handle.page.remove_listener("console", handle.on_console)
        handle.page.remove_listener("pageerror", handle.on_page_error)
        log = handle.snapshot()
        handle.clear()
        handle.log = log
        handle.state = "stopped"
        logger.debug(
            "Event recorder stopped",
            events=len(log),
            errors=len(log.errors()),
            warnings=len(log.warnings()),
        )
        return log


@asynccontextmanager
async def recording(page: Any, recorder: EventRecorder | None = None) -> AsyncIterator[RecordingHandle]:
    """Arm a recorder for the block; the log is available via `handle.log` afterwards."""
    recorder = recorder or EventRecorder()
    handle = recorder.start(page)
    try:
        yield handle
    finally:
        recorder.stop(handle)
