"""epmon - agent wiring and console entry point."""

import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from epmon.config import AgentConfig, log_level_or_default, parse_args
from epmon.monitor import MonitorLoop
from epmon.refresher import ConfigRefresher
from epmon.sampler import ProcessSampler
from epmon.transport import HttpClient
from epmon.watchlist import WatchList

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Configure the root logger once: console, plus an optional rotating file."""
    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        return

    fmt = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(str(log_file), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class Agent:
    """
    The running agent: one WatchList shared by a ConfigRefresher and a MonitorLoop.

    The WatchList is the only state the two loops share. Each loop has its
    own HTTP client, and so its own session. Both loops and the sampler
    watch the same stop event, so ``stop()`` ends them all at their next wait.
    """

    def __init__(
        self,
        config: AgentConfig,
        config_client: HttpClient | None = None,
        report_client: HttpClient | None = None,
        sampler: ProcessSampler | None = None,
    ) -> None:
        """
        Initialize the Agent.

        Args:
            config: Validated settings.
            config_client: HTTP client of the ConfigRefresher.
            report_client: HTTP client of the MonitorLoop. Both are built from
                ``config.timeout`` if not given.
            sampler: Process sampler. A default one tied to the stop event if not given.
        """
        self.config = config
        self.stop_event = threading.Event()
        self.watch_list = WatchList()
        self.config_client = config_client or HttpClient(timeout=config.timeout)
        self.report_client = report_client or HttpClient(timeout=config.timeout)
        self.sampler = sampler or ProcessSampler(stop_event=self.stop_event)
        self.refresher = ConfigRefresher(
            self.watch_list,
            self.config_client,
            config.config_url,
            interval=config.config_interval,
            stop_event=self.stop_event,
        )
        self.monitor = MonitorLoop(
            self.watch_list,
            self.sampler,
            self.report_client,
            config.results_url,
            interval=config.monitor_interval,
            sample_workers=config.sample_workers,
            stop_event=self.stop_event,
        )

    @property
    def is_running(self) -> bool:
        """Check if either loop is still running."""
        return self.refresher.is_running or self.monitor.is_running

    def start(self) -> None:
        """Start both loops."""
        logger.info(
            "Starting epmon: config %s every %ss, results %s every %ss",
            self.config.config_url,
            self.config.config_interval,
            self.config.results_url,
            self.config.monitor_interval,
        )
        self.refresher.start()
        self.monitor.start()

    def wait(self, poll: float = 1.0) -> None:
        """Block until shutdown is requested."""
        # Short waits keep the main thread responsive to signals
        while not self.stop_event.wait(timeout=poll):
            pass

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop both loops and release their HTTP sessions.

        A loop still running after ``timeout`` may be inside an HTTP call, so
        its session is left open; the daemon thread ends with the process.
        """
        self.stop_event.set()
        for worker, client in (
            (self.refresher, self.config_client),
            (self.monitor, self.report_client),
        ):
            worker.join(timeout=timeout)
            if worker.is_running:
                logger.warning("%s did not stop within %ss", worker.thread_name, timeout)
            else:
                client.close()
        logger.info("epmon stopped")


def install_signal_handlers(agent: Agent) -> None:
    """Turn SIGINT and SIGTERM into a cooperative shutdown."""

    def handle(signum: int, _frame) -> None:
        logger.info("Termination signal (%d) received", signum)
        agent.stop_event.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the epmon agent."""
    args = parse_args(argv)
    # Logging comes first so option fallbacks below are reported through it
    setup_logging(
        log_level_or_default(args.log_level),
        Path(args.log_file).expanduser() if args.log_file else None,
    )
    config = AgentConfig.from_args(args)

    agent = Agent(config)
    install_signal_handlers(agent)
    agent.start()
    try:
        agent.wait()
    finally:
        agent.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
