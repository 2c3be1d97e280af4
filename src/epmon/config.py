"""Command-line configuration for epmon."""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from epmon.monitor import DEFAULT_MONITOR_INTERVAL
from epmon.refresher import DEFAULT_CONFIG_INTERVAL
from epmon.transport import DEFAULT_TIMEOUT
from epmon.worker import MAX_INTERVAL, MIN_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_URL = "http://localhost:8080/config"
DEFAULT_RESULTS_URL = "http://localhost:8080/results"
DEFAULT_SAMPLE_WORKERS = 1
MAX_SAMPLE_WORKERS = 32
MAX_TIMEOUT = 300.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(slots=True, frozen=True)
class AgentConfig:
    """Validated agent settings."""

    config_interval: int = DEFAULT_CONFIG_INTERVAL
    monitor_interval: int = DEFAULT_MONITOR_INTERVAL
    config_url: str = DEFAULT_CONFIG_URL
    results_url: str = DEFAULT_RESULTS_URL
    sample_workers: int = DEFAULT_SAMPLE_WORKERS
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Path | None = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "AgentConfig":
        """
        Build a config from parsed arguments.

        Invalid values are logged and replaced by their defaults.
        """
        return cls(
            config_interval=_int_option(
                "config-interval", args.config_interval, DEFAULT_CONFIG_INTERVAL,
                MIN_INTERVAL, MAX_INTERVAL,
            ),
            monitor_interval=_int_option(
                "monitor-interval", args.monitor_interval, DEFAULT_MONITOR_INTERVAL,
                MIN_INTERVAL, MAX_INTERVAL,
            ),
            config_url=_url_option("config-url", args.config_url, DEFAULT_CONFIG_URL),
            results_url=_url_option("results-url", args.results_url, DEFAULT_RESULTS_URL),
            sample_workers=_int_option(
                "sample-workers", args.sample_workers, DEFAULT_SAMPLE_WORKERS,
                1, MAX_SAMPLE_WORKERS,
            ),
            timeout=_float_option("timeout", args.timeout, DEFAULT_TIMEOUT, 0.1, MAX_TIMEOUT),
            log_level=_log_level_option(args.log_level),
            log_file=Path(args.log_file).expanduser() if args.log_file else None,
        )


def _int_option(name: str, raw: str | None, default: int, low: int, high: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("--%s: %r is not an integer, using default %d", name, raw, default)
        return default
    if not low <= value <= high:
        logger.warning(
            "--%s: %d is outside %d-%d, using default %d", name, value, low, high, default
        )
        return default
    return value


def _float_option(name: str, raw: str | None, default: float, low: float, high: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("--%s: %r is not a number, using default %s", name, raw, default)
        return default
    if not low <= value <= high:
        logger.warning("--%s: %s is outside %s-%s, using default %s", name, value, low, high, default)
        return default
    return value


def log_level_or_default(raw: str | None) -> str:
    """Normalize a log level name, or return the default if it is not one of LOG_LEVELS."""
    if raw is None:
        return DEFAULT_LOG_LEVEL
    level = raw.strip().upper()
    return level if level in LOG_LEVELS else DEFAULT_LOG_LEVEL


def _log_level_option(raw: str | None) -> str:
    level = log_level_or_default(raw)
    if raw is not None and level != raw.strip().upper():
        logger.warning(
            "--log-level: %r is not one of %s, using default %s",
            raw, ", ".join(LOG_LEVELS), DEFAULT_LOG_LEVEL,
        )
    return level


def _url_option(name: str, raw: str | None, default: str) -> str:
    if raw is None:
        return default
    parsed = urlparse(raw)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        logger.warning("--%s: %r is not an http(s) URL, using default %s", name, raw, default)
        return default
    return raw


def build_parser() -> argparse.ArgumentParser:
    """Build the epmon argument parser."""
    parser = argparse.ArgumentParser(
        prog="epmon",
        description="Report CPU and memory usage of watched applications to a results server.",
    )
    # Values stay strings here so bad input falls back instead of aborting
    parser.add_argument(
        "--config-interval",
        metavar="SECONDS",
        help=f"seconds between watch-list fetches, {MIN_INTERVAL}-{MAX_INTERVAL} "
        f"(default {DEFAULT_CONFIG_INTERVAL})",
    )
    parser.add_argument(
        "--monitor-interval",
        metavar="SECONDS",
        help=f"seconds between monitor ticks, {MIN_INTERVAL}-{MAX_INTERVAL} "
        f"(default {DEFAULT_MONITOR_INTERVAL})",
    )
    parser.add_argument(
        "--config-url",
        metavar="URL",
        help=f"watch-list source (default {DEFAULT_CONFIG_URL})",
    )
    parser.add_argument(
        "--results-url",
        metavar="URL",
        help=f"results collector (default {DEFAULT_RESULTS_URL})",
    )
    parser.add_argument(
        "--sample-workers",
        metavar="N",
        help=f"names sampled concurrently, 1-{MAX_SAMPLE_WORKERS} (default {DEFAULT_SAMPLE_WORKERS})",
    )
    parser.add_argument(
        "--timeout",
        metavar="SECONDS",
        help=f"HTTP request timeout (default {DEFAULT_TIMEOUT})",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help=f"logging level, one of {', '.join(LOG_LEVELS)} (default {DEFAULT_LOG_LEVEL})",
    )
    parser.add_argument("--log-file", metavar="PATH", help="also log to a rotating file")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
