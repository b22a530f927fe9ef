"""Resolution of a single item: local blob first, then the network."""

import logging
import threading
from concurrent.futures import Future
from typing import NamedTuple, Optional

from .exceptions import InvalidKey, NotFound, StorageError
from .keys import derive_key
from .storage import Scope
from .transport import is_remote_locator

logger = logging.getLogger("pixcache")


class FetchRequest(NamedTuple):
    """One item to resolve. ``identifier`` wins over ``custom_key`` for the key."""
    identifier: Optional[str] = None
    custom_key: Optional[str] = None
    use_cache: bool = True
    scope: Scope = Scope.PRIMARY


class SingleFetcher:
    """Resolves a :class:`FetchRequest` to bytes or ``None``.

    :meth:`fetch` never raises. With ``coalesce=True`` concurrent requests
    for the same key and scope share one lookup and one download;
    otherwise each request resolves on its own and duplicate downloads of
    a key are possible.
    """

    def __init__(self, store, transport, key_scheme="sha256", coalesce=False):
        self.store = store
        self.transport = transport
        self.key_scheme = key_scheme
        self.coalesce = coalesce
        self._inflight = {}
        self._lock = threading.Lock()
        self._stats = {"requests": 0, "cache_hits": 0, "downloads": 0, "empty": 0, "write_errors": 0}

    @property
    def stats(self):
        with self._lock:
            return dict(self._stats)

    def _count(self, name):
        with self._lock:
            self._stats[name] += 1

    def key_for(self, request):
        try:
            return derive_key(request.identifier, request.custom_key, scheme=self.key_scheme)
        except InvalidKey as e:
            logger.debug("no cache key: %s", e.message)
            return None

    def fetch(self, request):
        self._count("requests")
        key = self.key_for(request)
        if not self.coalesce or key is None:
            return self._resolve(request, key)

        slot = (key, request.scope, request.use_cache)
        with self._lock:
            pending = self._inflight.get(slot)
            if pending is None:
                pending = self._inflight[slot] = Future()
                leader = True
            else:
                leader = False
        if not leader:
            logger.debug("joining in-flight fetch for %s", key)
            return pending.result()

        result = None
        try:
            result = self._resolve(request, key)
        finally:
            with self._lock:
                del self._inflight[slot]
            pending.set_result(result)
        return result

    def _read_cached(self, key, scope):
        try:
            return self.store.read(key, scope)
        except (NotFound, StorageError) as e:
            logger.warning("cached blob unreadable, refetching: %s", e.message)
            return None

    def _resolve(self, request, key):
        if request.use_cache and key is not None and self.store.exists(key, request.scope):
            data = self._read_cached(key, request.scope)
            if data is not None:
                self._count("cache_hits")
                logger.debug("cache hit %s (%s)", key, request.scope.value)
                return data

        if not is_remote_locator(request.identifier):
            self._count("empty")
            return None

        data = self.transport.fetch_bytes(request.identifier)
        if not data:
            self._count("empty")
            return None
        self._count("downloads")

        if request.use_cache and key is not None:
            try:
                self.store.write(key, request.scope, data)
            except StorageError as e:
                self._count("write_errors")
                logger.warning("could not cache %s: %s", request.identifier, e.message)
        return data
