"""Asynchronous orchestration of the generate and scan workflows."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .camera import CameraScanner
from .config import AppConfig, CameraConfig, GeneratorOptions
from .content import ContentType, ScanAction, classify, scan_actions
from .errors import DecodeError
from .history import HistoryItem, HistoryStore
from .payload import FormattedPayload, VCardRecord, WiFiRecord, auto_detect, build_payload
from .qr import QRCodeManager
from .state import AppState

logger = logging.getLogger(__name__)

GENERATE = "generate"
SCAN = "scan"

NOT_FOUND_MESSAGE = (
    "No QR code found in image. Please ensure the image contains a clear, "
    "unobstructed QR code."
)


@dataclass(frozen=True, slots=True)
class GenerationResult:
    payload: FormattedPayload
    image: bytes | str
    digest: str
    options: GeneratorOptions
    history_item: Optional[HistoryItem] = None

    @property
    def content_type(self) -> ContentType:
        return self.payload.content_type


@dataclass(frozen=True, slots=True)
class ScanResult:
    content: str
    content_type: ContentType
    actions: Tuple[ScanAction, ...]
    history_item: Optional[HistoryItem] = None


class QRService:
    """Run generate and scan requests with last-write-wins semantics.

    Each channel (generate, scan) has at most one request in flight.  Starting
    a new request cancels the previous one, and a request that was superseded
    never updates :attr:`state` or the history store.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[HistoryStore] = None,
        qr: Optional[QRCodeManager] = None,
        camera_factory: Optional[Callable[[], CameraScanner]] = None,
        state: Optional[AppState] = None,
    ):
        self._config = config or AppConfig()
        self._store = store
        self._qr = qr or QRCodeManager(self._config)
        self._camera_factory = camera_factory or (
            lambda: CameraScanner(self._config, CameraConfig(), self._qr)
        )
        self.state = state or AppState()
        self.state.qr_available = self._qr.is_available()
        self._inflight: Dict[str, asyncio.Future] = {}

    @property
    def store(self) -> Optional[HistoryStore]:
        return self._store

    def default_options(self) -> GeneratorOptions:
        """Return rendering defaults, preferring the history store's settings."""

        settings = self._store.settings if self._store is not None else None
        return self._config.default_options(settings)

    async def _run_latest(self, channel: str, func: Callable[..., Any], *args: Any) -> Tuple[int, Any]:
        token = self.state.sequencer.issue(channel)

        previous = self._inflight.get(channel)
        if previous is not None and not previous.done():
            logger.debug("Cancelling superseded %s request", channel)
            previous.cancel()

        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._inflight[channel] = task
        try:
            result = await task
        finally:
            if self._inflight.get(channel) is task:
                del self._inflight[channel]

        if not self.state.sequencer.is_current(channel, token):
            raise asyncio.CancelledError(f"{channel} request superseded")
        return token, result

    def _record(
        self,
        type: str,
        content_type: ContentType,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        location: Optional[Dict[str, float]] = None,
    ) -> Optional[HistoryItem]:
        if self._store is None:
            return None

        if not self._store.settings.enable_geolocation:
            location = None

        item = self._store.add(type, content_type, content, metadata=metadata, location=location)
        try:
            self._store.save()
        except OSError as exc:
            logger.error("Failed to save history to %s: %s", self._store.path, exc)
        return item

    async def generate(
        self,
        content: str = "",
        content_type: ContentType | str | None = None,
        *,
        vcard: Optional[VCardRecord] = None,
        wifi: Optional[WiFiRecord] = None,
        options: Optional[GeneratorOptions] = None,
        auto_detect_type: bool = True,
        location: Optional[Dict[str, float]] = None,
    ) -> GenerationResult:
        """Format ``content`` for its content type and render it.

        The content type is settled (auto-detected from plain text when
        enabled) before formatting.  Raises :class:`ValidationError` before any
        rendering when a required field is missing.
        """

        selected = ContentType.parse(content_type or ContentType.TEXT)
        if auto_detect_type:
            selected = auto_detect(content, selected)

        payload = build_payload(selected, content, vcard=vcard, wifi=wifi)
        opts = (options or self.default_options()).validate()

        _token, image = await self._run_latest(GENERATE, self._qr.encode, payload.text, opts)

        self.state.last_payload = payload.text
        self.state.last_content_type = payload.content_type
        item = self._record(
            "generated",
            payload.content_type,
            payload.text,
            metadata=opts.metadata(),
            location=location,
        )
        logger.info("Generated %s QR code", payload.content_type.value)
        return GenerationResult(
            payload=payload,
            image=image,
            digest=self._qr.payload_digest(payload.text),
            options=opts,
            history_item=item,
        )

    async def _scan(
        self,
        func: Callable[..., Optional[str]],
        *args: Any,
        location: Optional[Dict[str, float]] = None,
    ) -> ScanResult:
        _token, decoded = await self._run_latest(SCAN, func, *args)
        if not decoded:
            raise DecodeError(NOT_FOUND_MESSAGE)

        content_type = classify(decoded)
        self.state.last_scan = decoded
        item = self._record("scanned", content_type, decoded, location=location)
        logger.info("Scanned %s QR code", content_type.value)
        return ScanResult(
            content=decoded,
            content_type=content_type,
            actions=scan_actions(content_type),
            history_item=item,
        )

    async def scan_image(
        self, path: str | Path, location: Optional[Dict[str, float]] = None
    ) -> ScanResult:
        """Decode the image at ``path`` and classify its contents."""

        return await self._scan(self._qr.decode_image, path, location=location)

    async def scan_bytes(
        self, data: bytes, location: Optional[Dict[str, float]] = None
    ) -> ScanResult:
        """Decode an in-memory image and classify its contents."""

        return await self._scan(self._qr.decode_bytes, data, location=location)

    async def scan_camera(
        self, timeout: Optional[float] = None, location: Optional[Dict[str, float]] = None
    ) -> ScanResult:
        """Scan frames from the camera until a QR code decodes.

        Cancelling the returned coroutine stops the camera loop.
        """

        scanner = self._camera_factory()
        try:
            return await self._scan(scanner.scan, timeout, location=location)
        except asyncio.CancelledError:
            scanner.stop()
            raise


__all__ = ["GenerationResult", "ScanResult", "QRService", "NOT_FOUND_MESSAGE"]
