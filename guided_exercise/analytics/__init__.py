"""Analytics and insights sinks for exercise sessions."""

from .base import AnalyticsSink, AnalyticsDispatcher
from .log import LoggingAnalytics
from .http import HttpAnalytics

__all__ = [
    "AnalyticsSink",
    "AnalyticsDispatcher",
    "LoggingAnalytics",
    "HttpAnalytics",
    "create_analytics",
]


def create_analytics(
    sinks: list[str] | None = None,
    **kwargs,
) -> AnalyticsDispatcher:
    """Factory function to build a dispatcher from sink names.

    Args:
        sinks: Sink names:
            - "log": write events to the application log
            - "http": post events to a collector (needs `endpoint`)
        **kwargs: Sink-specific arguments (endpoint, api_key, timeout, level)

    Returns:
        Dispatcher wrapping the requested sinks
    """
    dispatcher = AnalyticsDispatcher()

    for name in sinks or ["log"]:
        if name == "log":
            dispatcher.add_sink(LoggingAnalytics(level=kwargs.get("level", "INFO")))

        elif name == "http":
            endpoint = kwargs.get("endpoint")
            if not endpoint:
                raise ValueError("The http analytics sink needs an endpoint")
            dispatcher.add_sink(HttpAnalytics(
                endpoint=endpoint,
                api_key=kwargs.get("api_key"),
                timeout=kwargs.get("timeout", 10.0),
            ))

        else:
            raise ValueError(
                f"Unknown analytics sink: {name}. "
                f"Available: log, http"
            )

    return dispatcher
