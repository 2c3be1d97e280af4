"""Periodic background worker shared by the epmon loops."""

import logging
import threading

logger = logging.getLogger(__name__)

MIN_INTERVAL = 1
MAX_INTERVAL = 600


class PeriodicWorker:
    """
    Runs ``tick()`` in a daemon thread, then waits ``interval`` seconds.

    Workers are stopped through a ``threading.Event``. Passing the same event
    to several workers lets one call stop all of them; the wait between ticks
    returns as soon as the event is set.
    """

    thread_name = "PeriodicWorker"

    def __init__(
        self,
        interval: float,
        stop_event: threading.Event | None = None,
    ) -> None:
        """
        Initialize the worker.

        Args:
            interval: Seconds to wait after each tick.
            stop_event: Shared shutdown event. A private one is created if not given.
        """
        self._interval = interval
        self._stop_event = stop_event or threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        """Get the interval between ticks."""
        return self._interval

    @property
    def stop_event(self) -> threading.Event:
        """Get the shutdown event."""
        return self._stop_event

    @property
    def stopping(self) -> bool:
        """Check if shutdown has been requested."""
        return self._stop_event.is_set()

    @property
    def is_running(self) -> bool:
        """Check if the worker thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            return

        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name=self.thread_name,
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Request shutdown and wait for the worker thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self.join(timeout=timeout)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread to finish."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if not self._thread.is_alive():
                self._thread = None

    def run_once(self) -> None:
        """Run a single tick in the calling thread."""
        self.tick()

    def tick(self) -> None:
        """Do one unit of work. Subclasses override this."""
        raise NotImplementedError

    def _loop(self) -> None:
        """Main loop running in the background thread."""
        logger.info("%s started, interval %ss", self.thread_name, self._interval)
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                # Keep the loop alive; the next tick starts from scratch
                logger.exception("%s tick failed", self.thread_name)

            if self._stop_event.is_set():
                break
            logger.debug("%s sleeping for %s seconds", self.thread_name, self._interval)
            self._stop_event.wait(timeout=self._interval)
        logger.info("%s stopped", self.thread_name)
