"""Analytics sink protocol and fan-out dispatcher."""

from typing import Protocol

from loguru import logger

from ..engine.session import TerminalRecord


class AnalyticsSink(Protocol):
    """Protocol for analytics/insights backends."""

    def track(self, event: str, properties: dict) -> None:
        """Record a named event.

        Args:
            event: Event name, e.g. "EXERCISE_STARTED"
            properties: Event properties
        """
        ...

    def record_session(self, record: TerminalRecord) -> None:
        """Receive the terminal record of a finished session.

        Args:
            record: Summary of the completed or abandoned session
        """
        ...


class AnalyticsDispatcher:
    """Fans events out to several sinks.

    A failing sink is logged and skipped; it never stops the other sinks
    or the session that emitted the event.
    """

    def __init__(self, sinks: list[AnalyticsSink] | None = None):
        self.sinks: list[AnalyticsSink] = list(sinks or [])

    def add_sink(self, sink: AnalyticsSink) -> None:
        self.sinks.append(sink)

    def track(self, event: str, properties: dict) -> None:
        for sink in self.sinks:
            try:
                sink.track(event, properties)
            except Exception:
                logger.exception(f"{type(sink).__name__} failed to track {event}")

    def record_session(self, record: TerminalRecord) -> None:
        for sink in self.sinks:
            try:
                sink.record_session(record)
            except Exception:
                logger.exception(
                    f"{type(sink).__name__} failed to record session {record.session_id}"
                )

    def close(self) -> None:
        """Close sinks that hold resources."""
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()
