"""Bounded HTTP fetches and the connectivity check."""

import http.client
import logging
import socket
from urllib.error import URLError
from urllib.request import Request, urlopen

from thumbtube.config import settings

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) thumbtube"


class HTTPFetchError(Exception):
    """Raised when a URL cannot be fetched or returns an error status."""


def fetch_bytes(url: str, timeout: float | None = None) -> bytes:
    """Fetch a URL and return its body.

    Raises:
        HTTPFetchError: On any non-success status, network error or timeout.
    """
    request = Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urlopen(request, timeout=timeout or settings.request_timeout) as resp:
            return resp.read()
    except (URLError, http.client.HTTPException, OSError) as e:
        raise HTTPFetchError(f"Failed to fetch {url}: {e}") from e


def check_connection(host: str | None = None, timeout: float | None = None) -> bool:
    """Check TCP connectivity to host:443 within a short timeout."""
    host = host or settings.connectivity_host
    try:
        with socket.create_connection((host, 443), timeout=timeout or settings.connectivity_timeout):
            return True
    except OSError as e:
        logger.info("Connectivity check to %s failed: %s", host, e)
        return False
