"""Analytics sink that writes events to the application log."""

from loguru import logger

from ..engine.session import TerminalRecord


class LoggingAnalytics:
    """Writes analytics events through loguru. Useful locally and in tests."""

    def __init__(self, level: str = "INFO"):
        self.level = level

    def track(self, event: str, properties: dict) -> None:
        logger.bind(event=event, **properties).log(self.level, f"{event} {properties}")

    def record_session(self, record: TerminalRecord) -> None:
        summary = record.to_dict()
        logger.bind(event="SESSION_RECORD").log(
            self.level,
            f"Session {record.session_id} ({record.config_id}) {record.status.value}: "
            f"pre={summary['pre_rating']} post={summary['post_rating']} "
            f"duration={record.total_duration:.1f}s triggers={len(record.triggers)}",
        )
