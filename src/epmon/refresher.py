"""Periodic refresh of the watch list from a remote source."""

import logging
import threading

from epmon.errors import ConfigFetchError
from epmon.transport import HttpClient
from epmon.watchlist import WatchList
from epmon.worker import PeriodicWorker

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_INTERVAL = 10


class ConfigRefresher(PeriodicWorker):
    """
    Fetches the application list and swaps it into the shared WatchList.

    A failed fetch leaves the current list untouched: a stale list keeps the
    agent reporting, an empty one would silence it.
    """

    thread_name = "ConfigRefresher"

    def __init__(
        self,
        watch_list: WatchList,
        client: HttpClient,
        url: str,
        interval: float = DEFAULT_CONFIG_INTERVAL,
        stop_event: threading.Event | None = None,
    ) -> None:
        super().__init__(interval, stop_event)
        self._watch_list = watch_list
        self._client = client
        self._url = url

    @property
    def url(self) -> str:
        """Get the config source URL."""
        return self._url

    def tick(self) -> None:
        """Fetch the list once and apply it if the fetch succeeded."""
        if self.stopping:
            return
        self.refresh()

    def refresh(self) -> bool:
        """
        Fetch and apply the application list.

        Returns:
            True if the watch list was replaced, False if the fetch failed.
        """
        logger.info("Fetching watch list from %s", self._url)
        try:
            names = self._client.fetch_applications(self._url)
        except ConfigFetchError as exc:
            logger.warning(
                "Watch list fetch failed, keeping %d current entries: %s",
                len(self._watch_list),
                exc,
            )
            return False

        self._watch_list.replace(names)
        logger.info("Received %d apps to monitor: %s", len(names), ", ".join(names))
        return True
