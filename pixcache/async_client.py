"""Async pixcache client using aiohttp."""

import time
import asyncio
import inspect
import logging

from .batch import WINDOW_SIZE, split_windows
from .exceptions import InvalidKey, NotFound, StorageError, TransportError
from .fetcher import FetchRequest
from .keys import derive_key
from .storage import BlobStore, Scope
from .transport import DEFAULT_TIMEOUT, IMAGE_HEADERS, is_remote_locator

logger = logging.getLogger("pixcache")


class AsyncTransport:
    """Single-attempt byte fetching over an aiohttp ``ClientSession``."""

    def __init__(self, timeout=DEFAULT_TIMEOUT, pool_size=WINDOW_SIZE, headers=None):
        self.timeout = timeout
        self.pool_size = pool_size
        self._headers = dict(IMAGE_HEADERS)
        if headers:
            self._headers.update(headers)
        self._session = None

    async def __aenter__(self):
        self._open()
        return self

    async def __aexit__(self, *args):
        await self.close()

    def _open(self):
        import aiohttp
        from . import __version__

        if self._session is None:
            headers = {"User-Agent": f"pixcache/{__version__}", **self._headers}
            self._session = aiohttp.ClientSession(
                headers=headers,
                connector=aiohttp.TCPConnector(limit=self.pool_size),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _get(self, url):
        import aiohttp

        session = self._open()
        start = time.time()
        try:
            async with session.get(url) as resp:
                body = await resp.read()
                logger.debug("GET %s → %d (%.2fs)", url, resp.status, time.time() - start)
                if not 200 <= resp.status < 300:
                    raise TransportError(f"GET {url} returned {resp.status}",
                                         url=url, status_code=resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"GET {url} failed: {e!r}", url=url)
        if not body:
            raise TransportError(f"GET {url} returned no content", url=url)
        return body

    async def fetch_bytes(self, locator):
        """Return the payload at ``locator`` or ``None``."""
        try:
            return await self._get(locator)
        except TransportError as e:
            logger.warning("%s", e.message)
            return None

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None


async def _call(callback, *args):
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("batch callback %r raised", callback)


class AsyncImageCache:
    """Asyncio counterpart of :class:`pixcache.ImageCache`.

    Blob I/O runs in worker threads through ``asyncio.to_thread``. There is
    no in-flight de-duplication here.
    """

    def __init__(self, primary_dir=None, secondary_dir=None, window_size=WINDOW_SIZE,
                 timeout=DEFAULT_TIMEOUT, key_scheme="sha256", transport=None, debug=False):
        self.store = BlobStore(primary_dir, secondary_dir)
        self.window_size = window_size
        self.key_scheme = key_scheme
        self._own_transport = transport is None
        self.transport = transport or AsyncTransport(timeout=timeout, pool_size=window_size)

        if debug:
            logging.basicConfig(level=logging.DEBUG)
            logger.setLevel(logging.DEBUG)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        if self._own_transport:
            await self.transport.close()

    def locate(self, identifier=None, custom_key=None, scope=Scope.PRIMARY):
        try:
            key = derive_key(identifier, custom_key, scheme=self.key_scheme)
        except InvalidKey:
            return None
        return self.store.path(key, scope)

    async def _resolve(self, request):
        try:
            key = derive_key(request.identifier, request.custom_key, scheme=self.key_scheme)
        except InvalidKey:
            key = None

        if request.use_cache and key is not None:
            try:
                return await asyncio.to_thread(self.store.read, key, request.scope)
            except NotFound:
                pass
            except StorageError as e:
                logger.warning("cached blob unreadable, refetching: %s", e.message)

        if not is_remote_locator(request.identifier):
            return None
        data = await self.transport.fetch_bytes(request.identifier)
        if not data:
            return None

        if request.use_cache and key is not None:
            try:
                await asyncio.to_thread(self.store.write, key, request.scope, data)
            except StorageError as e:
                logger.warning("could not cache %s: %s", request.identifier, e.message)
        return data

    async def fetch_one(self, identifier=None, custom_key=None, use_cache=True, scope=Scope.PRIMARY):
        """Return the bytes for an item, from the local copy if there is one."""
        request = FetchRequest(identifier, custom_key, use_cache, Scope(scope))
        try:
            return await self._resolve(request)
        except Exception:
            logger.exception("fetch of %s failed", identifier or custom_key)
            return None

    async def fetch_many(self, identifiers, on_item, on_done, use_cache=True, on_window=None):
        """Fetch identifiers window by window; items in a window run concurrently.

        Callbacks may be plain functions or coroutine functions. Returns the
        same summary dict as the threaded client.
        """
        requests = [FetchRequest(identifier, None, use_cache, Scope.PRIMARY) for identifier in identifiers]
        summary = {"items": 0, "fetched": 0, "empty": 0, "windows": 0}

        async def _item(request, index):
            data = await self.fetch_one(request.identifier, None, request.use_cache) if request.identifier else None
            summary["items"] += 1
            summary["fetched" if data is not None else "empty"] += 1
            await _call(on_item, data, index)

        for number, window in enumerate(split_windows(requests, self.window_size)):
            summary["windows"] += 1
            await _call(on_window, number, len(window))
            base = number * self.window_size
            await asyncio.gather(*(_item(request, base + offset) for offset, request in enumerate(window)))

        await _call(on_done)
        return summary

    async def save(self, data, key, scope=Scope.PRIMARY):
        try:
            await asyncio.to_thread(self.store.write, derive_key(None, key), Scope(scope), data)
        except (InvalidKey, StorageError) as e:
            logger.warning("save failed: %s", e.message)
            return False
        return True

    async def delete_one(self, identifier=None, custom_key=None, scope=Scope.PRIMARY):
        try:
            key = derive_key(identifier, custom_key, scheme=self.key_scheme)
            await asyncio.to_thread(self.store.delete, key, Scope(scope))
        except (InvalidKey, NotFound):
            return False
        except StorageError as e:
            logger.warning("delete failed: %s", e.message)
            return False
        return True
