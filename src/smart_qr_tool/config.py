"""Configuration data structures for the Smart QR Tool."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Set

from .errors import ValidationError

ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")
OUTPUT_FORMATS = ("png", "svg", "jpeg")


def _default_history_path() -> Path:
    return Path.home() / ".smart_qr_tool" / "history.json"


@dataclass(slots=True)
class HistorySettings:
    """User preferences persisted alongside the history list.

    Values set through :meth:`override` (environment or command line) are
    pinned: :meth:`merge` leaves them alone when a saved file is loaded.
    """

    max_history_items: int = 50
    enable_geolocation: bool = False
    default_size: int = 256
    default_error_correction: str = "M"
    pinned: Set[str] = field(default_factory=set, compare=False, repr=False)

    def to_dict(self) -> dict:
        return {
            "max_history_items": self.max_history_items,
            "enable_geolocation": self.enable_geolocation,
            "default_size": self.default_size,
            "default_error_correction": self.default_error_correction,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "HistorySettings":
        settings = cls()
        settings.merge(data)
        return settings

    def merge(self, data: Mapping[str, object]) -> "HistorySettings":
        """Update in place from saved ``data``, skipping pinned settings."""

        converters = {
            "max_history_items": int,
            "enable_geolocation": bool,
            "default_size": int,
            "default_error_correction": str,
        }
        for name, convert in converters.items():
            if name in data and name not in self.pinned:
                setattr(self, name, convert(data[name]))
        return self

    def override(self, name: str, value: object) -> None:
        """Set ``name`` and pin it against values merged from a saved file."""

        setattr(self, name, value)
        self.pinned.add(name)


@dataclass(slots=True)
class GeneratorOptions:
    """Rendering options handed to the QR encoder."""

    error_correction: str = "M"
    size: int = 256
    margin: int = 4
    foreground: str = "#000000"
    background: str = "#ffffff"
    version: Optional[int] = None
    output_format: str = "png"

    def validate(self) -> "GeneratorOptions":
        """Return ``self`` after checking every option is in range."""

        if self.error_correction.upper() not in ERROR_CORRECTION_LEVELS:
            raise ValidationError(
                f"Error correction level must be one of {', '.join(ERROR_CORRECTION_LEVELS)}"
            )
        if self.output_format.lower() not in OUTPUT_FORMATS:
            raise ValidationError(
                f"Output format must be one of {', '.join(OUTPUT_FORMATS)}"
            )
        if self.size <= 0:
            raise ValidationError("Size must be a positive number of pixels")
        if self.margin < 0:
            raise ValidationError("Margin cannot be negative")
        if self.version is not None and not 1 <= self.version <= 40:
            raise ValidationError("Version must be between 1 and 40")
        return self

    def metadata(self) -> dict:
        """Return the subset of options recorded with generated history items."""

        return {
            "size": self.size,
            "error_correction": self.error_correction.upper(),
            "foreground": self.foreground,
            "background": self.background,
        }


@dataclass(slots=True)
class AppConfig:
    """Static configuration options used across the application."""

    app_name: str = "SmartQRTool"
    app_version: str = "1.0"
    qr_error_correction: str = "M"
    qr_size: int = 256
    qr_margin: int = 4
    qr_foreground: str = "#000000"
    qr_background: str = "#ffffff"
    qr_output_format: str = "png"
    camera_frame_skip: int = 5
    camera_fps: int = 10
    max_frame_size: int = 1_920
    max_upload_dimension: int = 1_000
    history_path: Path = field(default_factory=_default_history_path)
    history: HistorySettings = field(default_factory=HistorySettings)

    def default_options(self, settings: Optional[HistorySettings] = None) -> GeneratorOptions:
        """Return generator options seeded from the configured defaults.

        ``settings`` takes precedence over :attr:`history`, so a loaded history
        store can supply the user's saved defaults.
        """

        settings = settings or self.history
        return GeneratorOptions(
            error_correction=settings.default_error_correction or self.qr_error_correction,
            size=settings.default_size or self.qr_size,
            margin=self.qr_margin,
            foreground=self.qr_foreground,
            background=self.qr_background,
            output_format=self.qr_output_format,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Return a configuration with ``SMART_QR_*`` environment overrides applied."""

        environ = os.environ if environ is None else environ
        config = cls()

        history_path = environ.get("SMART_QR_HISTORY")
        if history_path:
            config.history_path = Path(history_path).expanduser()

        max_items = environ.get("SMART_QR_MAX_HISTORY")
        if max_items:
            try:
                config.history.override("max_history_items", int(max_items))
            except ValueError as exc:
                raise ValidationError(
                    f"SMART_QR_MAX_HISTORY must be an integer, got {max_items!r}"
                ) from exc

        return config


@dataclass(slots=True)
class CameraConfig:
    """Runtime camera configuration used by the camera scanner."""

    width: int = 640
    height: int = 480

    def get_backends(self) -> List[int]:
        """Return a list of OpenCV backend identifiers to try.

        OpenCV is imported lazily so the rest of the package stays usable
        without it.
        """

        try:  # pragma: no cover - depends on the environment
            import cv2  # type: ignore
        except Exception:  # pragma: no cover - no backends without OpenCV
            return []

        try:
            return [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY]
        except AttributeError:  # pragma: no cover - depends on the OpenCV build
            return [0]

    def get_indices(self) -> List[int]:
        """Return candidate camera indices."""

        return [0, 1, 2]


__all__ = [
    "ERROR_CORRECTION_LEVELS",
    "OUTPUT_FORMATS",
    "AppConfig",
    "CameraConfig",
    "GeneratorOptions",
    "HistorySettings",
]
