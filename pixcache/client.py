"""Main pixcache client."""

import logging

from .batch import BatchOrchestrator, WINDOW_SIZE
from .codec import DEFAULT_QUALITY, decode_image, encode_image
from .exceptions import CodecError, InvalidKey, NotFound, StorageError
from .fetcher import FetchRequest, SingleFetcher
from .keys import derive_key
from .storage import BlobStore, Scope
from .transport import DEFAULT_TIMEOUT, RemoteTransport

logger = logging.getLogger("pixcache")


class ImageCache:
    """Fetch remote images once, then serve them from a local directory.

    Public operations never raise for per-item failures: fetches return
    ``None`` and saves/deletes return ``False``.
    """

    def __init__(self, primary_dir=None, secondary_dir=None, window_size=WINDOW_SIZE,
                 max_workers=None, timeout=DEFAULT_TIMEOUT, key_scheme="sha256",
                 coalesce=False, transport=None, debug=False):
        self.store = BlobStore(primary_dir, secondary_dir)
        self.key_scheme = key_scheme
        self._own_transport = transport is None
        self.transport = transport or RemoteTransport(timeout=timeout, pool_size=window_size)
        self.fetcher = SingleFetcher(self.store, self.transport, key_scheme=key_scheme, coalesce=coalesce)
        self.orchestrator = BatchOrchestrator(self.fetcher, window_size=window_size, max_workers=max_workers)

        if debug:
            logging.basicConfig(level=logging.DEBUG)
            logger.setLevel(logging.DEBUG)

    @property
    def stats(self):
        """Get fetch statistics."""
        stats = self.fetcher.stats
        hits = stats["cache_hits"]
        return {
            **stats,
            "hit_rate": round(hits / max(stats["requests"], 1) * 100, 1),
        }

    def directory(self, scope=Scope.PRIMARY):
        """Root directory of a scope."""
        return self.store.directory(scope)

    def locate(self, identifier=None, custom_key=None, scope=Scope.PRIMARY):
        """Path of the local file for an identifier or custom key, or ``None``.

        The path is returned whether or not the file exists yet.
        """
        try:
            key = derive_key(identifier, custom_key, scheme=self.key_scheme)
        except InvalidKey:
            return None
        return self.store.path(key, scope)

    def fetch_one(self, identifier=None, custom_key=None, use_cache=True, scope=Scope.PRIMARY):
        """Return the bytes for an item, from the local copy if there is one."""
        request = FetchRequest(identifier, custom_key, use_cache, Scope(scope))
        try:
            return self.fetcher.fetch(request)
        except Exception:
            logger.exception("fetch of %s failed", identifier or custom_key)
            return None

    def submit_one(self, identifier=None, custom_key=None, use_cache=True, scope=Scope.PRIMARY):
        """Like :meth:`fetch_one` but runs on the worker pool and returns a Future."""
        return self.orchestrator.submit(self.fetch_one, identifier, custom_key, use_cache, scope)

    def fetch_many(self, identifiers, on_item, on_done, use_cache=True, on_window=None):
        """Fetch many identifiers in windows of bounded concurrency.

        ``on_item(data, index)`` is called once per identifier, including
        ``None`` entries, and ``on_done()`` once at the end. Returns a Future
        with a summary of the batch.
        """
        requests = [FetchRequest(identifier, None, use_cache, Scope.PRIMARY) for identifier in identifiers]
        return self.orchestrator.fetch_all(requests, on_item, on_done, on_window=on_window)

    def fetch_image(self, identifier=None, custom_key=None, use_cache=True, scope=Scope.PRIMARY):
        """Fetch an item and decode it into a PIL image, or ``None``."""
        data = self.fetch_one(identifier, custom_key, use_cache, scope)
        if data is None:
            return None
        try:
            return decode_image(data)
        except CodecError as e:
            logger.warning("%s", e.message)
            return None

    def save(self, data, key, scope=Scope.PRIMARY):
        """Store raw bytes under a custom key. Returns ``True`` on success."""
        path_key = self._custom_key(key)
        if path_key is None:
            return False
        try:
            self.store.write(path_key, Scope(scope), data)
        except StorageError as e:
            logger.warning("save failed: %s", e.message)
            return False
        return True

    def save_image(self, image, key, as_jpeg=True, quality=DEFAULT_QUALITY, scope=Scope.PRIMARY):
        """Encode a PIL image as JPEG or PNG and store it under a custom key."""
        try:
            data = encode_image(image, as_jpeg=as_jpeg, quality=quality)
        except CodecError as e:
            logger.warning("%s", e.message)
            return False
        return self.save(data, key, scope)

    def delete_one(self, identifier=None, custom_key=None, scope=Scope.PRIMARY):
        """Remove a cached blob. ``False`` when it is missing or cannot be removed."""
        try:
            key = derive_key(identifier, custom_key, scheme=self.key_scheme)
            self.store.delete(key, Scope(scope))
        except InvalidKey:
            return False
        except NotFound as e:
            logger.debug("%s", e.message)
            return False
        except StorageError as e:
            logger.warning("delete failed: %s", e.message)
            return False
        return True

    def delete_many(self, identifiers, scope=Scope.PRIMARY):
        """Delete the blobs of many identifiers in the background.

        Fire-and-forget; the returned Future only lets callers wait for it.
        """
        identifiers = list(identifiers)

        def _delete_all():
            removed = sum(1 for identifier in identifiers if self.delete_one(identifier, None, scope))
            logger.debug("deleted %d/%d cached blobs", removed, len(identifiers))
            return removed

        return self.orchestrator.submit(_delete_all)

    def _custom_key(self, key):
        try:
            return derive_key(None, key)
        except InvalidKey as e:
            logger.warning("%s", e.message)
            return None

    def shutdown(self, wait=True):
        """Stop the worker pool once running batches have finished.

        The owned transport is closed after the pool has stopped, so
        ``wait=False`` never cuts off a batch that is still fetching.
        """
        on_stopped = self.transport.close if self._own_transport else None
        self.orchestrator.shutdown(wait=wait, on_stopped=on_stopped)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.shutdown()
