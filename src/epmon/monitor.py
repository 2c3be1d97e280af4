"""Periodic sampling of watched applications and reporting of the results."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from epmon.errors import ReportError
from epmon.models import ProcessSample, Report
from epmon.sampler import ProcessSampler
from epmon.transport import HttpClient
from epmon.watchlist import WatchList
from epmon.worker import PeriodicWorker

logger = logging.getLogger(__name__)

DEFAULT_MONITOR_INTERVAL = 4


class MonitorLoop(PeriodicWorker):
    """
    Samples every watched application and POSTs the results.

    Each tick copies the WatchList, samples each name, drops names with no
    live process and ships whatever is left as one report. Nothing is
    retried or queued; a failed POST is logged and the tick ends.

    With ``sample_workers == 1`` names are sampled one after another, so a
    tick lasts at least ``sampler.delay * len(names)`` seconds. Larger values
    sample on a bounded thread pool; report order still follows the watch list.
    """

    thread_name = "MonitorLoop"

    def __init__(
        self,
        watch_list: WatchList,
        sampler: ProcessSampler,
        client: HttpClient,
        url: str,
        interval: float = DEFAULT_MONITOR_INTERVAL,
        sample_workers: int = 1,
        stop_event: threading.Event | None = None,
    ) -> None:
        """
        Initialize the MonitorLoop.

        Args:
            watch_list: Shared list of application names.
            sampler: Sampler used for every name.
            client: HTTP client used to deliver reports.
            url: Results collector URL.
            interval: Seconds to wait after each tick. Default 4s.
            sample_workers: Maximum names sampled concurrently. Default 1.
            stop_event: Shared shutdown event.
        """
        super().__init__(interval, stop_event)
        self._watch_list = watch_list
        self._sampler = sampler
        self._client = client
        self._url = url
        self._sample_workers = max(1, sample_workers)

    @property
    def url(self) -> str:
        """Get the results collector URL."""
        return self._url

    @property
    def sample_workers(self) -> int:
        """Get the sampling concurrency."""
        return self._sample_workers

    def tick(self) -> None:
        """Snapshot, sample, report."""
        names = self._watch_list.snapshot()
        if not names:
            logger.warning("No apps to monitor")
            return

        report = self.collect(names)
        if self.stopping:
            return
        if not report:
            logger.warning("No results to send")
            return

        self.send(report)

    def collect(self, names: tuple[str, ...] | list[str]) -> Report:
        """Sample ``names`` and build a report from the ones that were found."""
        if self._sample_workers == 1 or len(names) == 1:
            samples = [self._sample_one(name) for name in names]
        else:
            workers = min(self._sample_workers, len(names))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sampler") as pool:
                samples = list(pool.map(self._sample_one, names))

        found = []
        for sample in samples:
            if sample is None:
                continue
            if sample.found:
                found.append(sample)
            else:
                logger.warning("Process %s not found (pid %d)", sample.app, sample.pid)
        return Report(samples=tuple(found))

    def send(self, report: Report) -> bool:
        """
        POST ``report`` to the results collector.

        Returns:
            True if the collector accepted it.
        """
        try:
            self._client.post_report(self._url, report)
        except ReportError as exc:
            logger.warning("Failed to send app monitor results: %s", exc)
            return False
        logger.info("Sent results for %d apps to %s", len(report), self._url)
        return True

    def _sample_one(self, name: str) -> ProcessSample | None:
        if self.stopping:
            return None
        logger.info("Getting info for %s", name)
        return self._sampler.sample(name)
