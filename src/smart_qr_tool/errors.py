"""Exception types raised by the Smart QR Tool."""
from __future__ import annotations


class QRToolError(Exception):
    """Base class for errors surfaced to the user."""


class ValidationError(QRToolError, ValueError):
    """Raised when a required field is missing or an option is out of range.

    Validation happens before any payload is formatted, so nothing needs to be
    rolled back when it is raised.
    """


class DecodeError(QRToolError):
    """Raised when an image or camera frame yields no readable QR code."""


__all__ = ["QRToolError", "ValidationError", "DecodeError"]
