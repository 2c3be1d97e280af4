"""HTTP transport for the watch-list source and the results collector."""

import logging

import requests

from epmon.errors import ConfigFetchError, ConfigFormatError, ReportError
from epmon.models import Report

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def parse_applications(body: object) -> list[str]:
    """
    Extract the application names from a config response body.

    The body must be shaped ``{"applications": [str, ...]}``.

    Raises:
        ConfigFormatError: if the body has any other shape.
    """
    if not isinstance(body, dict):
        raise ConfigFormatError(f"expected a JSON object, got {type(body).__name__}")
    if "applications" not in body:
        raise ConfigFormatError("missing 'applications' key")

    apps = body["applications"]
    if not isinstance(apps, list):
        raise ConfigFormatError(f"'applications' must be a list, got {type(apps).__name__}")
    for app in apps:
        if not isinstance(app, str):
            raise ConfigFormatError(f"application names must be strings, got {app!r}")
    return list(apps)


class HttpClient:
    """Thin wrapper around a ``requests.Session`` with a fixed timeout."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the HttpClient.

        Args:
            timeout: Per-request timeout (seconds). Default 10.0s.
            session: Session to use. A new one is created if not given.
        """
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def timeout(self) -> float:
        """Get the request timeout."""
        return self._timeout

    def fetch_applications(self, url: str) -> list[str]:
        """
        GET the watch list from ``url``.

        Raises:
            ConfigFetchError: on transport errors, HTTP errors or a non-JSON body.
            ConfigFormatError: if the JSON body has the wrong shape.
        """
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ConfigFetchError(f"GET {url} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ConfigFetchError(f"GET {url} returned a non-JSON body") from exc

        return parse_applications(body)

    def post_report(self, url: str, report: Report) -> None:
        """
        POST ``report`` to ``url`` as JSON.

        Raises:
            ReportError: on transport or HTTP errors.
        """
        try:
            response = self._session.post(url, json=report.to_payload(), timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ReportError(f"POST {url} failed: {exc}") from exc
        logger.debug("POST %s answered %d", url, response.status_code)

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()
