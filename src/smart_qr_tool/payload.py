"""Payload formatting for the structured QR content types.

Each ``format_*`` function is pure: the same input always yields the same
string, and no function keeps state between calls.  Only :func:`format_wifi`
can reject its input; the URI formatters degrade to best-effort output.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from .content import ContentType, classify
from .errors import ValidationError

CRLF = "\r\n"
"""Line terminator required by vCard consumers."""

_VCARD_SPECIALS = re.compile(r"[\\;,]")
_WIFI_SPECIALS = re.compile(r"[\\;:,\"]")
_DIAL_SEPARATORS = re.compile(r"[\s\-()]")
_TEL_PREFIX = re.compile(r"^tel:", re.IGNORECASE)
_MAILTO_PREFIX = re.compile(r"^mailto:", re.IGNORECASE)
_SMS_PREFIX = re.compile(r"^(sms|smsto):", re.IGNORECASE)
_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)

# Unreserved mark characters kept in the SMS body, on top of the letters,
# digits and ``_.-~`` that :func:`urllib.parse.quote` always keeps.
_URI_COMPONENT_SAFE = "!*'()"


class WiFiEncryption(str, enum.Enum):
    WPA = "WPA"
    WEP = "WEP"
    NOPASS = "nopass"

    @classmethod
    def parse(cls, value: "WiFiEncryption | str") -> "WiFiEncryption":
        if isinstance(value, cls):
            return value
        token = str(value).strip()
        if token.lower() in ("nopass", "none", ""):
            return cls.NOPASS
        try:
            return cls(token.upper())
        except ValueError as exc:
            raise ValidationError(f"Unsupported WiFi encryption: {value!r}") from exc


@dataclass(slots=True)
class VCardRecord:
    """Contact details rendered as a vCard 3.0 block; every field is optional."""

    first_name: str = ""
    last_name: str = ""
    organization: str = ""
    phone: str = ""
    email: str = ""
    url: str = ""
    address: str = ""

    def is_empty(self) -> bool:
        return not any(
            (
                self.first_name,
                self.last_name,
                self.organization,
                self.phone,
                self.email,
                self.url,
                self.address,
            )
        )


@dataclass(slots=True)
class WiFiRecord:
    """Network credentials for the ``WIFI:`` payload grammar."""

    ssid: str
    password: str = ""
    encryption: WiFiEncryption = WiFiEncryption.WPA
    hidden: bool = False

    def __post_init__(self) -> None:
        self.encryption = WiFiEncryption.parse(self.encryption)


@dataclass(frozen=True, slots=True)
class FormattedPayload:
    """The exact text handed to the QR encoder."""

    text: str
    content_type: ContentType

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.text


def _escape_vcard(value: str) -> str:
    escaped = _VCARD_SPECIALS.sub(lambda match: "\\" + match.group(0), value)
    return escaped.replace("\r\n", "\\n").replace("\r", "\\n").replace("\n", "\\n")


def _escape_wifi(value: str) -> str:
    return _WIFI_SPECIALS.sub(lambda match: "\\" + match.group(0), value)


def _strip_dial_separators(value: str) -> str:
    return _DIAL_SEPARATORS.sub("", value)


def format_vcard(record: VCardRecord) -> str:
    """Serialise ``record`` as a CRLF terminated vCard 3.0 block.

    The display name is only emitted when a first or last name is present and
    is always followed by the structured ``N`` line.  The address is placed
    whole into the street component of ``ADR``.
    """

    lines = ["BEGIN:VCARD", "VERSION:3.0"]

    if record.first_name or record.last_name:
        full_name = f"{record.first_name} {record.last_name}".strip()
        if full_name:
            lines.append(f"FN:{_escape_vcard(full_name)}")
        lines.append(
            f"N:{_escape_vcard(record.last_name)};{_escape_vcard(record.first_name)};;;"
        )

    if record.organization:
        lines.append(f"ORG:{_escape_vcard(record.organization)}")

    if record.phone:
        phone = _TEL_PREFIX.sub("", record.phone).strip()
        lines.append(f"TEL:{_escape_vcard(phone)}")

    if record.email:
        email = _MAILTO_PREFIX.sub("", record.email).strip()
        lines.append(f"EMAIL:{_escape_vcard(email)}")

    if record.url:
        lines.append(f"URL:{_escape_vcard(format_url(record.url))}")

    if record.address:
        lines.append(f"ADR:;;;{_escape_vcard(record.address)};;;")

    lines.append("END:VCARD")
    return CRLF.join(lines) + CRLF


def format_wifi(record: WiFiRecord) -> str:
    """Serialise ``record`` using the ``WIFI:T:..;S:..;P:..;H:..;;`` grammar.

    Raises :class:`ValidationError` when the SSID is empty.  The password is
    never included for open networks.
    """

    if not record.ssid:
        raise ValidationError("WiFi network name (SSID) is required")

    encryption = WiFiEncryption.parse(record.encryption)
    if encryption is WiFiEncryption.NOPASS:
        security = "nopass"
    elif encryption is WiFiEncryption.WPA:
        security = "WPA"
    else:
        security = encryption.value.upper()

    parts = [f"WIFI:T:{security}", f"S:{_escape_wifi(record.ssid)}"]

    password = _escape_wifi(record.password or "")
    if encryption is not WiFiEncryption.NOPASS and password:
        parts.append(f"P:{password}")

    if record.hidden:
        parts.append("H:true")

    return ";".join(parts) + ";;"


def format_phone(raw: str) -> str:
    """Return ``raw`` as a ``tel:`` URI with dialling separators removed."""

    cleaned = _TEL_PREFIX.sub("", raw.strip()).strip()
    return f"tel:{_strip_dial_separators(cleaned)}"


def format_email(raw: str) -> str:
    """Return ``raw`` as a ``mailto:`` URI.  The address is not validated."""

    cleaned = _MAILTO_PREFIX.sub("", raw.strip()).strip()
    return f"mailto:{cleaned}"


def format_sms(phone: str, message: Optional[str] = None) -> str:
    """Return an ``sms:`` URI, with a percent-encoded ``body`` when given."""

    cleaned = _SMS_PREFIX.sub("", phone.strip()).strip()
    number = _strip_dial_separators(cleaned)

    if message and message.strip():
        body = quote(message.strip(), safe=_URI_COMPONENT_SAFE)
        return f"sms:{number}?body={body}"

    return f"sms:{number}"


def format_url(raw: str) -> str:
    """Return ``raw`` with an explicit ``https://`` scheme when it has none."""

    url = raw.strip()
    if not _HTTP_SCHEME.match(url):
        url = f"https://{url}"
    return url


def auto_detect(content: str, selected: ContentType | str = ContentType.TEXT) -> ContentType:
    """Refine a ``text`` selection by classifying ``content``.

    Any other explicit selection is kept as chosen.
    """

    selected = ContentType.parse(selected)
    if selected is ContentType.TEXT and content.strip():
        return classify(content)
    return selected


def _require_content(content: str, message: str) -> str:
    if not content or not content.strip():
        raise ValidationError(message)
    return content


def build_payload(
    content_type: ContentType | str,
    content: str = "",
    *,
    vcard: Optional[VCardRecord] = None,
    wifi: Optional[WiFiRecord] = None,
) -> FormattedPayload:
    """Format ``content`` (or the matching record) for ``content_type``.

    For SMS the first whitespace separated token of ``content`` is the number
    and the remainder is the message body.
    """

    content_type = ContentType.parse(content_type)

    if content_type is ContentType.VCARD:
        if vcard is None:
            raise ValidationError("A vCard record is required")
        text = format_vcard(vcard)
    elif content_type is ContentType.WIFI:
        if wifi is None:
            raise ValidationError("A WiFi record is required")
        text = format_wifi(wifi)
    elif content_type is ContentType.PHONE:
        text = format_phone(_require_content(content, "Please enter a phone number"))
    elif content_type is ContentType.EMAIL:
        text = format_email(_require_content(content, "Please enter an email address"))
    elif content_type is ContentType.SMS:
        parts = _require_content(content, "Please enter a phone number").split()
        text = format_sms(parts[0], " ".join(parts[1:]) or None)
    elif content_type is ContentType.URL:
        text = format_url(_require_content(content, "Please enter a URL"))
    elif content_type is ContentType.TEXT:
        text = _require_content(content, "Please enter text")
    else:  # pragma: no cover - every ContentType is handled above
        raise AssertionError(f"Unhandled content type: {content_type}")

    return FormattedPayload(text=text, content_type=content_type)


__all__ = [
    "CRLF",
    "WiFiEncryption",
    "VCardRecord",
    "WiFiRecord",
    "FormattedPayload",
    "format_vcard",
    "format_wifi",
    "format_phone",
    "format_email",
    "format_sms",
    "format_url",
    "auto_detect",
    "build_payload",
]
