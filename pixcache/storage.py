"""Blob storage under two scope directories."""

import enum
import logging
import os
import tempfile
from pathlib import Path

from .exceptions import NotFound, StorageError

logger = logging.getLogger("pixcache")


class Scope(enum.Enum):
    """Which storage root a blob lives in.

    PRIMARY is the purgeable cache root, SECONDARY the durable data root.
    """
    PRIMARY = "primary"
    SECONDARY = "secondary"


def default_directories(app_name="pixcache"):
    """Resolve the (primary, secondary) roots for an application.

    ``PIXCACHE_HOME`` puts both under one directory. Otherwise the XDG
    cache and data homes are used, falling back to ``~/.cache`` and
    ``~/.local/share``.
    """
    home = os.environ.get("PIXCACHE_HOME")
    if home:
        base = Path(home).expanduser()
        return base / "cache", base / "data"

    cache_home = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    data_home = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(cache_home) / app_name, Path(data_home) / app_name


class BlobStore:
    """Maps a cache key and scope to a file of raw bytes.

    There is no locking: two writers of the same key race and the last
    ``os.replace`` wins. Readers never see a partially written file.
    """

    def __init__(self, primary_dir=None, secondary_dir=None):
        if primary_dir is None or secondary_dir is None:
            default_primary, default_secondary = default_directories()
            primary_dir = primary_dir or default_primary
            secondary_dir = secondary_dir or default_secondary
        self._roots = {
            Scope.PRIMARY: Path(primary_dir),
            Scope.SECONDARY: Path(secondary_dir),
        }

    def directory(self, scope=Scope.PRIMARY):
        return self._roots[Scope(scope)]

    def path(self, key, scope=Scope.PRIMARY):
        return self.directory(scope) / key

    def exists(self, key, scope=Scope.PRIMARY):
        return self.path(key, scope).is_file()

    def read(self, key, scope=Scope.PRIMARY):
        path = self.path(key, scope)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound(f"No blob for key {key}", path=path)
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}", path=path)

    def write(self, key, scope, data):
        """Write ``data`` under ``key``, replacing any existing blob."""
        path = self.path(key, scope)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=path.parent)
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not write {path}: {e}", path=path)
        logger.debug("wrote %d bytes to %s", len(data), path)
        return path

    def delete(self, key, scope=Scope.PRIMARY):
        path = self.path(key, scope)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFound(f"No blob for key {key}", path=path)
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}", path=path)
        logger.debug("deleted %s", path)
