"""Stop signal and in-flight worker accounting for one server instance."""

import logging
import threading
import time

from chunkserver.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.lifecycle"), {}
)


class ServerLifecycle:
    """Shared between the accept loop, its workers and the owning handle."""

    def __init__(self) -> None:
        self._stopping = threading.Event()
        self._idle = threading.Condition()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        return self._stopping.is_set()

    def request_stop(self) -> bool:
        """Flag the accept loop to exit; False when a stop was already requested."""
        with self._idle:
            if self._stopping.is_set():
                return False
            self._stopping.set()
        LIFECYCLE_LOGGER.info("Stop requested", extra={"event": "stop_requested"})
        return True

    def register_worker(self, thread: threading.Thread) -> None:
        with self._idle:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._idle:
            self._workers.discard(thread)
            if not self._workers:
                self._idle.notify_all()

    def active_worker_count(self) -> int:
        with self._idle:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Block until every worker has finished or ``timeout`` seconds pass.

        Threads that died without deregistering are forgotten on each check.
        """
        deadline = time.monotonic() + timeout
        with self._idle:
            while True:
                self._workers = {w for w in self._workers if w.is_alive()}
                if not self._workers:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    LIFECYCLE_LOGGER.warning(
                        "Stop grace period exceeded",
                        extra={"event": "stop_timeout", "workers": len(self._workers)},
                    )
                    return False
                self._idle.wait(min(0.1, remaining))
