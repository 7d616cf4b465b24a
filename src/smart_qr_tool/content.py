"""Content type detection for raw QR payload text."""
from __future__ import annotations

import enum
import re
from typing import Optional, Tuple

from .errors import ValidationError

_PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContentType(str, enum.Enum):
    """Semantic category of a QR payload."""

    TEXT = "text"
    URL = "url"
    PHONE = "phone"
    EMAIL = "email"
    VCARD = "vcard"
    WIFI = "wifi"
    SMS = "sms"

    @classmethod
    def parse(cls, value: "ContentType | str") -> "ContentType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError(f"Unknown content type: {value!r}") from exc


class ScanAction(str, enum.Enum):
    """Follow-up actions offered for a decoded payload."""

    OPEN_URL = "open-url"
    CALL = "call"
    EMAIL = "email"
    COPY = "copy"


def classify(raw: str) -> ContentType:
    """Return the :class:`ContentType` that best describes ``raw``.

    The checks run in a fixed order and the first match wins: explicit URI
    schemes are recognised before the looser phone and e-mail shapes.  Any
    string is accepted; empty input is plain text.
    """

    candidate = raw.strip().lower()

    if candidate.startswith(("http://", "https://")):
        return ContentType.URL
    if candidate.startswith("tel:"):
        return ContentType.PHONE
    if candidate.startswith("mailto:"):
        return ContentType.EMAIL
    if candidate.startswith(("smsto:", "sms:")):
        return ContentType.SMS
    # Any run of digits qualifies, including a single digit.
    if _PHONE_RE.match(candidate) and any(char.isdigit() for char in candidate):
        return ContentType.PHONE
    if _EMAIL_RE.match(candidate):
        return ContentType.EMAIL
    return ContentType.TEXT


def scan_actions(content_type: ContentType) -> Tuple[ScanAction, ...]:
    """Return the actions to offer after scanning content of ``content_type``."""

    if content_type is ContentType.URL:
        return (ScanAction.OPEN_URL, ScanAction.COPY)
    if content_type is ContentType.PHONE:
        return (ScanAction.CALL, ScanAction.COPY)
    if content_type is ContentType.EMAIL:
        return (ScanAction.EMAIL, ScanAction.COPY)
    return (ScanAction.COPY,)


def action_target(action: ScanAction, content: str) -> Optional[str]:
    """Return the URI that ``action`` should open for ``content``.

    ``None`` means the action has nothing to open (copying, or a URL action on
    content without an http(s) scheme).
    """

    if action is ScanAction.OPEN_URL:
        if content.startswith(("http://", "https://")):
            return content
        return None
    if action is ScanAction.CALL:
        return content if content.startswith("tel:") else f"tel:{content}"
    if action is ScanAction.EMAIL:
        return content if content.startswith("mailto:") else f"mailto:{content}"
    return None


__all__ = ["ContentType", "ScanAction", "classify", "scan_actions", "action_target"]
