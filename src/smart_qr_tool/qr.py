"""QR code encoding and decoding utilities."""
from __future__ import annotations

import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AppConfig, GeneratorOptions
from .errors import DecodeError

logger = logging.getLogger(__name__)


def _import_segno():
    try:
        import segno  # type: ignore
    except Exception as exc:  # pragma: no cover - depends on environment
        raise RuntimeError("QR generation requires segno; install segno") from exc
    return segno


def _import_pillow():
    try:
        from PIL import Image  # type: ignore
    except Exception as exc:  # pragma: no cover - depends on environment
        raise RuntimeError("Raster output requires Pillow; install pillow") from exc
    return Image


def _import_decoder():
    try:
        import cv2  # type: ignore
        import numpy  # type: ignore
        from pyzbar import pyzbar  # type: ignore
    except Exception as exc:  # pragma: no cover - depends on environment
        raise RuntimeError(
            "QR decoding requires opencv-python and pyzbar (plus the zbar library)"
        ) from exc
    return cv2, numpy, pyzbar


@dataclass(slots=True)
class QRCodeManager:
    """Render QR symbols with :mod:`segno` and read them back with :mod:`pyzbar`."""

    config: AppConfig

    def is_available(self) -> bool:
        try:
            import segno  # type: ignore  # noqa: F401  # pragma: no cover - optional dependency
        except Exception:
            return False
        return True

    def _ensure_bytes(self, payload: bytes | bytearray | str) -> bytes:
        """Return ``payload`` as ``bytes`` for digest operations."""

        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        return payload.encode("utf-8")

    def payload_digest(self, data: bytes | bytearray | str) -> str:
        """Return the SHA-256 digest of the QR payload.

        The digest lets callers check that a decoded payload matches the text
        that was encoded, and is recorded alongside saved images.
        """

        return hashlib.sha256(self._ensure_bytes(data)).hexdigest()

    def _options(self, options: Optional[GeneratorOptions]) -> GeneratorOptions:
        return (options or self.config.default_options()).validate()

    def make_symbol(self, text: str, options: Optional[GeneratorOptions] = None):
        """Return the segno symbol for ``text``."""

        segno = _import_segno()
        opts = self._options(options)
        return segno.make(
            text,
            error=opts.error_correction.lower(),
            version=opts.version,
            micro=False,
            boost_error=False,
        )

    def encode(self, text: str, options: Optional[GeneratorOptions] = None) -> bytes | str:
        """Render ``text`` as an image.

        SVG output is returned as text; PNG and JPEG output as bytes.  Raster
        images are ``options.size`` pixels wide, raised to one pixel per module
        when the symbol would not fit.
        """

        opts = self._options(options)
        qr = self.make_symbol(text, opts)
        output_format = opts.output_format.lower()
        width, _height = qr.symbol_size(scale=1, border=opts.margin)
        size = max(opts.size, width)
        if size != opts.size:
            logger.debug(
                "Raising size from %d to %d pixels to fit %d modules", opts.size, size, width
            )

        logger.debug(
            "Encoding %d characters as %s (version=%s, error=%s)",
            len(text),
            output_format,
            getattr(qr, "version", opts.version),
            opts.error_correction,
        )

        if output_format == "svg":
            buffer = io.BytesIO()
            qr.save(
                buffer,
                kind="svg",
                scale=size / float(width),
                border=opts.margin,
                dark=opts.foreground,
                light=opts.background,
                xmldecl=False,
            )
            return buffer.getvalue().decode("utf-8")

        buffer = io.BytesIO()
        qr.save(
            buffer,
            kind="png",
            scale=size // width,
            border=opts.margin,
            dark=opts.foreground,
            light=opts.background,
        )
        buffer.seek(0)
        return self._finish_raster(buffer, opts, size)

    def _finish_raster(self, buffer: io.BytesIO, opts: GeneratorOptions, size: int) -> bytes:
        Image = _import_pillow()

        with Image.open(buffer) as rendered:
            image = rendered.convert("RGB")

        if image.size != (size, size):
            image = image.resize((size, size), Image.NEAREST)

        output = io.BytesIO()
        if opts.output_format.lower() == "jpeg":
            image.save(output, format="JPEG", quality=95)
        else:
            image.save(output, format="PNG")
        return output.getvalue()

    def save(
        self,
        text: str,
        path: str | Path,
        options: Optional[GeneratorOptions] = None,
    ) -> str:
        """Persist a QR code representing ``text`` to ``path``.

        The method returns the SHA-256 digest of ``text`` so that callers can
        display or record the checksum alongside the generated image.
        """

        rendered = self.encode(text, options)
        target = Path(path)
        if isinstance(rendered, str):
            target.write_text(rendered, encoding="utf-8")
        else:
            target.write_bytes(rendered)

        logger.info("Saved QR code to %s", target)
        return self.payload_digest(text)

    def decode_image(self, path: str | Path) -> Optional[str]:
        """Return the text of the first QR code in the image at ``path``.

        ``None`` means the image was read but contains no QR code.
        """

        source = Path(path)
        if not source.is_file():
            raise DecodeError(f"Image not found: {source}")

        cv2, _numpy, _pyzbar = _import_decoder()
        image = cv2.imread(str(source))
        if image is None:
            raise DecodeError("Failed to load image. Please ensure the file is a valid image.")
        return self.decode_frame(image)

    def decode_bytes(self, data: bytes) -> Optional[str]:
        """Return the text of the first QR code in encoded image ``data``."""

        cv2, numpy, _pyzbar = _import_decoder()
        image = cv2.imdecode(numpy.frombuffer(data, dtype=numpy.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise DecodeError("Failed to load image. Please ensure the file is a valid image.")
        return self.decode_frame(image)

    def decode_frame(self, frame) -> Optional[str]:
        """Decode a BGR ``numpy`` frame, trying several pre-processed variants."""

        cv2, _numpy, pyzbar = _import_decoder()
        frame = self._limit_size(cv2, frame)
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame

        for processed in (
            gray,
            cv2.GaussianBlur(gray, (5, 5), 0),
            cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1],
            cv2.bitwise_not(gray),
        ):
            decoded = pyzbar.decode(processed, symbols=[pyzbar.ZBarSymbol.QRCODE])
            if decoded:
                return self.decode_qr_payload(decoded[0].data)

        return None

    def _limit_size(self, cv2, frame):
        limit = self.config.max_upload_dimension
        height, width = frame.shape[:2]
        if max(height, width) <= limit:
            return frame

        ratio = min(limit / float(width), limit / float(height))
        new_size = (int(width * ratio), int(height * ratio))
        logger.debug("Downscaling %dx%d image to %dx%d", width, height, *new_size)
        return cv2.resize(frame, new_size)

    @staticmethod
    def decode_qr_payload(data: bytes | str) -> str:
        """Return decoded symbol data as trimmed text.

        Symbols that do not hold valid UTF-8 are decoded with replacement
        characters rather than failing.
        """

        if isinstance(data, str):
            return data.strip()
        return bytes(data).decode("utf-8", errors="replace").strip()


__all__ = ["QRCodeManager"]
