"""
Exception types shared by the operation layer and the HTTP routes.
"""

from __future__ import annotations

from typing import Optional

PERMISSION_DENIED_MARKER = "PERMISSION_DENIED"


class WallpaperPlusError(Exception):
    """Base class for errors raised by this package."""


class NotFoundError(WallpaperPlusError):
    pass


class ValidationError(WallpaperPlusError):
    """Raised when submitted data fails validation.

    `errors` maps a field name to a human readable message.
    """

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class AuthenticationError(WallpaperPlusError):
    pass


class PermissionDeniedError(WallpaperPlusError):
    pass


class StorageError(WallpaperPlusError):
    pass


def is_permission_denied(error: BaseException) -> bool:
    """True for our own permission errors and for SDK errors that report one."""
    if isinstance(error, PermissionDeniedError):
        return True
    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() == PERMISSION_DENIED_MARKER:
        return True
    return PERMISSION_DENIED_MARKER in str(error).upper().replace(" ", "_")
