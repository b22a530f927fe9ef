"""pixcache — fetch remote images once, serve them from local storage."""

__version__ = "0.4.0"

from .client import ImageCache
from .async_client import AsyncImageCache, AsyncTransport
from .batch import BatchOrchestrator, WINDOW_SIZE, split_windows
from .fetcher import FetchRequest, SingleFetcher
from .keys import derive_key
from .storage import BlobStore, Scope, default_directories
from .transport import RemoteTransport, is_remote_locator
from .exceptions import (
    PixCacheError, InvalidKey, NotFound, StorageError, TransportError, CodecError,
)

__all__ = [
    "ImageCache", "AsyncImageCache", "AsyncTransport",
    "BatchOrchestrator", "WINDOW_SIZE", "split_windows",
    "FetchRequest", "SingleFetcher", "derive_key",
    "BlobStore", "Scope", "default_directories",
    "RemoteTransport", "is_remote_locator",
    "PixCacheError", "InvalidKey", "NotFound", "StorageError", "TransportError", "CodecError",
]
