"""
Pipeline Events — Structured progress reporting for the backup pipeline.

Components never print directly. They emit PipelineEvent records on an
EventBus; subscribers decide what to do with them. ConsoleReporter is the
default subscriber: it prints the operator-facing status lines and forwards
every event to the "hoppscotch_backup" logger.

Event kinds:
  stage_started    A pipeline stage began (message = stage title)
  stage_succeeded  A stage finished
  stage_failed     A stage raised; data["error"] holds the message
  file_written     A file was written (data["path"])
  file_skipped     A collection file could not be written (data["warning"])
  info / warning   Free-form milestone or warning lines
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("hoppscotch_backup")
# Silent unless run.py configures logging (--debug)
logger.addHandler(logging.NullHandler())

STAGE_STARTED = "stage_started"
STAGE_SUCCEEDED = "stage_succeeded"
STAGE_FAILED = "stage_failed"
FILE_WRITTEN = "file_written"
FILE_SKIPPED = "file_skipped"
INFO = "info"
WARNING = "warning"


@dataclass
class PipelineEvent:
    kind: str
    message: str
    stage: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Fan-out of PipelineEvents to subscribers, in subscription order."""

    def __init__(self):
        self._subscribers: List[Callable[[PipelineEvent], None]] = []

    def subscribe(self, callback: Callable[[PipelineEvent], None]):
        self._subscribers.append(callback)
        return callback

    def emit(self, kind: str, message: str, stage: Optional[str] = None, **data) -> PipelineEvent:
        event = PipelineEvent(kind=kind, message=message, stage=stage, data=data)
        for callback in self._subscribers:
            callback(event)
        return event

    def info(self, message: str, stage: Optional[str] = None, **data) -> PipelineEvent:
        return self.emit(INFO, message, stage, **data)

    def warning(self, message: str, stage: Optional[str] = None, **data) -> PipelineEvent:
        return self.emit(WARNING, message, stage, **data)


class EventRecorder:
    """Subscriber that keeps every event in memory."""

    def __init__(self):
        self.events: List[PipelineEvent] = []

    def __call__(self, event: PipelineEvent):
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: str) -> List[PipelineEvent]:
        return [e for e in self.events if e.kind == kind]


_LOG_LEVELS = {
    STAGE_FAILED: logging.ERROR,
    FILE_SKIPPED: logging.WARNING,
    WARNING: logging.WARNING,
}


class ConsoleReporter:
    """Print operator-facing status lines for pipeline events.

    Stage starts get a banner, everything else is an indented line. Debug
    mode also prints the event payload.
    """

    def __init__(self, debug: bool = False, printer: Callable[[str], None] = print):
        self.debug = debug
        self._print = printer

    def __call__(self, event: PipelineEvent):
        logger.log(_LOG_LEVELS.get(event.kind, logging.INFO), "[%s] %s", event.stage or "-", event.message)

        if event.kind == STAGE_STARTED:
            self._print(f"\n{'='*60}")
            self._print(event.message.upper())
            self._print("="*60)
        elif event.kind == STAGE_FAILED:
            self._print(f"  ERROR: {event.message}")
        elif event.kind in (FILE_SKIPPED, WARNING):
            self._print(f"  Warning: {event.message}")
        else:
            self._print(f"  {event.message}")

        if self.debug and event.data:
            for key, value in event.data.items():
                self._print(f"    {key}: {value}")
