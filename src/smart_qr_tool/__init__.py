"""Smart QR Tool package."""
from __future__ import annotations

from .config import AppConfig, CameraConfig, GeneratorOptions, HistorySettings
from .content import ContentType, ScanAction, action_target, classify, scan_actions
from .errors import DecodeError, QRToolError, ValidationError
from .history import HistoryItem, HistoryStore, compute_stats
from .payload import (
    FormattedPayload,
    VCardRecord,
    WiFiEncryption,
    WiFiRecord,
    auto_detect,
    build_payload,
    format_email,
    format_phone,
    format_sms,
    format_url,
    format_vcard,
    format_wifi,
)
from .qr import QRCodeManager
from .service import GenerationResult, QRService, ScanResult
from .state import AppState, RequestSequencer

__all__ = [
    "AppConfig",
    "CameraConfig",
    "GeneratorOptions",
    "HistorySettings",
    "ContentType",
    "ScanAction",
    "action_target",
    "classify",
    "scan_actions",
    "DecodeError",
    "QRToolError",
    "ValidationError",
    "HistoryItem",
    "HistoryStore",
    "compute_stats",
    "FormattedPayload",
    "VCardRecord",
    "WiFiEncryption",
    "WiFiRecord",
    "auto_detect",
    "build_payload",
    "format_email",
    "format_phone",
    "format_sms",
    "format_url",
    "format_vcard",
    "format_wifi",
    "QRCodeManager",
    "GenerationResult",
    "QRService",
    "ScanResult",
    "AppState",
    "RequestSequencer",
]

__version__ = "1.0"
