"""
Product analytics events.

Callers pass an EventSink to the components that emit events instead of
reaching for a process-wide analytics client.
"""

import logging
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


class EventSink(Protocol):
    def capture(self, event: str, properties: dict[str, Any] | None = None) -> None: ...


class NullEventSink:
    """Drops every event."""

    def capture(self, event: str, properties: dict[str, Any] | None = None) -> None:
        return None


class LoggingEventSink:
    """Records events through logging at INFO level."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or LOGGER

    def capture(self, event: str, properties: dict[str, Any] | None = None) -> None:
        self._logger.info("event %s %s", event, properties or {})


class RecordingEventSink:
    """Keeps events in memory, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def capture(self, event: str, properties: dict[str, Any] | None = None) -> None:
        self.events.append((event, dict(properties or {})))
