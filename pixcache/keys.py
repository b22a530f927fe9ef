"""Cache key derivation from remote identifiers or custom names."""

import base64
import hashlib
import os

from .exceptions import InvalidKey

KEY_SCHEMES = ("sha256", "base64")

# legacy layout: urlsafe base64 of the identifier, cut to this many characters
LEGACY_KEY_LENGTH = 100


def _legacy_key(identifier):
    encoded = base64.urlsafe_b64encode(identifier.encode("utf-8")).decode("ascii")
    return encoded[:LEGACY_KEY_LENGTH]


def _check_custom_key(custom_key):
    if custom_key in (".", ".."):
        raise InvalidKey(f"Custom key {custom_key!r} does not name a file")
    seps = {os.sep, "/"} | ({os.altsep} if os.altsep else set())
    if any(s in custom_key for s in seps) or "\x00" in custom_key:
        raise InvalidKey(f"Custom key {custom_key!r} must be a bare file name")
    return custom_key


def derive_key(identifier=None, custom_key=None, scheme="sha256"):
    """Return the cache key for a remote identifier or a custom name.

    The identifier wins when both are given. With the default ``sha256``
    scheme the key is the hex digest of the UTF-8 identifier, so it has a
    fixed width and distinct URLs never share a key. The ``base64`` scheme
    reads caches written with the older truncated-base64 layout; two URLs
    whose encodings share the first 100 characters collide under it.

    Raises InvalidKey when neither value is usable.
    """
    if scheme not in KEY_SCHEMES:
        raise ValueError(f"Unknown key scheme {scheme!r}, expected one of {KEY_SCHEMES}")

    if identifier:
        if scheme == "base64":
            return _legacy_key(identifier)
        return hashlib.sha256(identifier.encode("utf-8")).hexdigest()

    if custom_key:
        return _check_custom_key(custom_key)

    raise InvalidKey("Either an identifier or a custom key is required")
