"""Error telemetry sinks.

``StructlogErrorReporter`` forwards reports into the structured log stream
(where a log shipper can pick them up); ``CollectingErrorReporter`` keeps
them in memory for inspection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from .interfaces import ErrorReporter, ReportLevel

logger = structlog.get_logger(__name__)


@dataclass
class TelemetryEvent:
    """A single reported message.

    Attributes:
        message: Human-readable message.
        level: Severity.
        timestamp: When the message was reported.
    """

    message: str
    level: ReportLevel
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for serialization."""
        return {
            "message": self.message,
            "level": self.level.value,
            "timestamp": self.timestamp.isoformat(),
        }


class StructlogErrorReporter(ErrorReporter):
    """Emits telemetry messages as structured log events."""

    def __init__(self) -> None:
        self._log = logger.bind(component="telemetry")

    def capture_message(self, message: str, level: ReportLevel = ReportLevel.ERROR) -> None:
        if level is ReportLevel.ERROR:
            self._log.error("telemetry_message", message=message)
        elif level is ReportLevel.WARNING:
            self._log.warning("telemetry_message", message=message)
        else:
            self._log.info("telemetry_message", message=message)


class CollectingErrorReporter(ErrorReporter):
    """Keeps reported messages in memory."""

    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    def capture_message(self, message: str, level: ReportLevel = ReportLevel.ERROR) -> None:
        self.events.append(TelemetryEvent(message=message, level=level))

    @property
    def messages(self) -> list[str]:
        """Reported messages, oldest first."""
        return [event.message for event in self.events]

    def clear(self) -> None:
        """Forget all reported messages."""
        self.events.clear()
