"""Page inspection: observation collection, event recording and interaction probes."""

from .collector import collect
from .interactions import click_with_timeout, follow_link, inspect_form, probe_buttons, submit_empty_form
from .recorder import EventRecorder, RecordingHandle, recording

__all__ = [
    "collect",
    "EventRecorder",
    "RecordingHandle",
    "recording",
    "click_with_timeout",
    "probe_buttons",
    "inspect_form",
    "submit_empty_form",
    "follow_link",
]
