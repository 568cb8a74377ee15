"""Analytics sink that posts events to an HTTP collector.

Requests go out from a background worker thread so the session never
waits on the network. Delivery is best effort: failures are logged and
the event is dropped.
"""

import queue
import threading

import httpx
from loguru import logger

from ..engine.session import TerminalRecord

_STOP = object()


class HttpAnalytics:
    """Posts events to `<endpoint>/events` and session records to `<endpoint>/sessions`."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the HTTP sink and start its worker.

        Args:
            endpoint: Base URL of the analytics collector
            api_key: Bearer token for the collector
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.endpoint = endpoint.rstrip("/")

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

        self._queue: queue.Queue = queue.Queue()
        self._worker = threading.Thread(target=self._run, name="http-analytics", daemon=True)
        self._worker.start()

    def track(self, event: str, properties: dict) -> None:
        self._queue.put(("/events", {"event": event, "properties": properties}))

    def record_session(self, record: TerminalRecord) -> None:
        self._queue.put(("/sessions", record.to_dict()))

    def close(self, timeout: float = 5.0) -> None:
        """Send whatever is queued, then stop the worker."""
        self._queue.put(_STOP)
        self._worker.join(timeout=timeout)
        self._client.close()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            path, payload = item
            self._post(path, payload)

    def _post(self, path: str, payload: dict) -> None:
        try:
            response = self._client.post(f"{self.endpoint}{path}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Analytics POST {path} failed: {type(e).__name__}: {e}")
        except Exception:
            # The worker has to outlive any single failed request
            logger.exception(f"Analytics POST {path} failed")
