"""
pixcache exceptions
"""


class PixCacheError(Exception):
    """Base exception for pixcache"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidKey(PixCacheError):
    """Raised when neither an identifier nor a custom key can name a blob"""
    pass


class NotFound(PixCacheError):
    """Raised when a blob is absent from its scope directory"""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class StorageError(PixCacheError):
    """Raised when a blob cannot be written or removed"""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class TransportError(PixCacheError):
    """Raised by transports for network failures, non-2xx responses and empty bodies"""

    def __init__(self, message: str, url: str = None, status_code: int = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class CodecError(PixCacheError):
    """Raised when bytes cannot be decoded into an image or an image cannot be encoded"""
    pass
