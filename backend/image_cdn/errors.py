"""
Image CDN Errors
错误类型

Every failure the CDN can surface to a client maps to one of these classes.
The HTTP layer turns them into JSON responses using ``status_code``.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories"""
    VALIDATION = "validation"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    PROCESSING = "processing"
    STORAGE = "storage"


class ImageCDNError(Exception):
    """Base class for all CDN errors"""
    kind: ErrorKind = ErrorKind.PROCESSING
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(ImageCDNError):
    """Malformed, oversized or wrong-type upload"""
    kind = ErrorKind.VALIDATION
    status_code = 400


class AccessDenied(ImageCDNError):
    """Requested path escapes the cache root"""
    kind = ErrorKind.ACCESS_DENIED
    status_code = 403


class NotFound(ImageCDNError):
    """Requested cache entry does not exist"""
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ProcessingFailure(ImageCDNError):
    """Image could not be decoded, resized or encoded"""
    kind = ErrorKind.PROCESSING
    status_code = 500


class StorageFailure(ImageCDNError):
    """Cache store read/write I/O error"""
    kind = ErrorKind.STORAGE
    status_code = 500

