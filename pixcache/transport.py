"""Single-attempt HTTP retrieval of raw bytes."""

import time
import logging
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from .exceptions import TransportError

logger = logging.getLogger("pixcache")

DEFAULT_TIMEOUT = 30

IMAGE_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}


def is_remote_locator(value):
    """True when ``value`` is an http(s) URL with a host."""
    if not value or not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class RemoteTransport:
    """Fetches bytes over a pooled ``requests.Session``.

    One attempt per call. Every failure, whatever the cause, comes back as
    ``None`` from :meth:`fetch_bytes`.
    """

    def __init__(self, timeout=DEFAULT_TIMEOUT, pool_size=12, headers=None, user_agent=None):
        from . import __version__

        self.timeout = timeout
        self._session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._session.headers.update(IMAGE_HEADERS)
        self._session.headers["User-Agent"] = user_agent or f"pixcache/{__version__}"
        if headers:
            self._session.headers.update(headers)

    def _get(self, url):
        start = time.time()
        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}", url=url)
        logger.debug("GET %s → %d (%.2fs)", url, resp.status_code, time.time() - start)
        if not 200 <= resp.status_code < 300:
            raise TransportError(f"GET {url} returned {resp.status_code}",
                                 url=url, status_code=resp.status_code)
        if not resp.content:
            raise TransportError(f"GET {url} returned no content",
                                 url=url, status_code=resp.status_code)
        return resp.content

    def fetch_bytes(self, locator):
        """Return the payload at ``locator`` or ``None``."""
        try:
            return self._get(locator)
        except TransportError as e:
            logger.warning("%s", e.message)
            return None

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
