from __future__ import annotations

import io
import sys
import types

import pytest

from smart_qr_tool.config import AppConfig, GeneratorOptions
from smart_qr_tool.errors import DecodeError, ValidationError
from smart_qr_tool.qr import QRCodeManager


class DummyQR:
    version = 2

    def __init__(self, calls):
        self._calls = calls

    def symbol_size(self, scale=1, border=None):
        return (25 + 2 * border, 25 + 2 * border)

    def save(self, stream, **kwargs):
        self._calls.append(kwargs)
        if kwargs["kind"] == "svg":
            stream.write(b'<svg xmlns="http://www.w3.org/2000/svg"/>')
            return
        from PIL import Image

        Image.new("RGB", (120, 120), "white").save(stream, format="PNG")


@pytest.fixture()
def fake_segno(monkeypatch):
    calls = []

    def fake_make(_data, **kwargs):
        calls.append(kwargs)
        return DummyQR(calls)

    monkeypatch.setitem(sys.modules, "segno", types.SimpleNamespace(make=fake_make))
    return calls


def test_payload_digest_matches_sha256():
    manager = QRCodeManager(AppConfig())

    digest = manager.payload_digest("WIFI:T:WPA;S:Home;P:pw;;")

    assert digest == manager.payload_digest(b"WIFI:T:WPA;S:Home;P:pw;;")
    assert len(digest) == 64


def test_encode_svg_returns_text(fake_segno):
    manager = QRCodeManager(AppConfig())

    svg = manager.encode("hello", GeneratorOptions(output_format="svg", size=330, margin=4))

    assert svg.startswith("<svg")
    make_kwargs, save_kwargs = fake_segno
    assert make_kwargs["error"] == "m"
    assert save_kwargs["scale"] == pytest.approx(10.0)
    assert save_kwargs["dark"] == "#000000"
    assert save_kwargs["light"] == "#ffffff"


def test_encode_png_is_resized_to_requested_size(fake_segno):
    Image = pytest.importorskip("PIL.Image")
    manager = QRCodeManager(AppConfig())

    png = manager.encode("hello", GeneratorOptions(size=256, error_correction="H"))

    with Image.open(io.BytesIO(png)) as image:
        assert image.size == (256, 256)
        assert image.format == "PNG"
    assert fake_segno[0]["error"] == "h"


def test_encode_jpeg(fake_segno):
    Image = pytest.importorskip("PIL.Image")
    manager = QRCodeManager(AppConfig())

    jpeg = manager.encode("hello", GeneratorOptions(size=128, output_format="jpeg"))

    with Image.open(io.BytesIO(jpeg)) as image:
        assert image.format == "JPEG"
        assert image.size == (128, 128)


def test_encode_png_never_shrinks_below_one_pixel_per_module(fake_segno):
    Image = pytest.importorskip("PIL.Image")
    manager = QRCodeManager(AppConfig())

    png = manager.encode("hello", GeneratorOptions(size=24, margin=4))

    with Image.open(io.BytesIO(png)) as image:
        assert image.size == (33, 33)
    assert fake_segno[1]["scale"] == 1


def test_encode_svg_scale_is_at_least_one(fake_segno):
    manager = QRCodeManager(AppConfig())

    manager.encode("hello", GeneratorOptions(output_format="svg", size=10, margin=4))

    assert fake_segno[1]["scale"] == pytest.approx(1.0)


def test_tiny_size_keeps_every_module_with_segno():
    pytest.importorskip("segno")
    Image = pytest.importorskip("PIL.Image")
    manager = QRCodeManager(AppConfig())
    options = GeneratorOptions(size=24, margin=4)
    modules, _ = manager.make_symbol("hello", options).symbol_size(scale=1, border=4)

    png = manager.encode("hello", options)

    with Image.open(io.BytesIO(png)) as image:
        assert image.size == (modules, modules)


def test_encode_rejects_invalid_options(fake_segno):
    manager = QRCodeManager(AppConfig())

    with pytest.raises(ValidationError):
        manager.encode("hello", GeneratorOptions(version=41))
    assert fake_segno == []


def test_save_writes_file_and_returns_digest(fake_segno, tmp_path):
    manager = QRCodeManager(AppConfig())
    target = tmp_path / "qr.svg"

    digest = manager.save("payload", target, GeneratorOptions(output_format="svg"))

    assert digest == manager.payload_digest("payload")
    assert target.read_text(encoding="utf-8").startswith("<svg")


def test_encode_is_deterministic_with_segno():
    pytest.importorskip("segno")
    manager = QRCodeManager(AppConfig())
    options = GeneratorOptions(output_format="svg", size=200)

    assert manager.encode("tel:+15551234", options) == manager.encode("tel:+15551234", options)


def test_roundtrip_through_decoder():
    pytest.importorskip("segno")
    pytest.importorskip("PIL.Image")
    pytest.importorskip("cv2")
    pytest.importorskip("pyzbar.pyzbar")
    manager = QRCodeManager(AppConfig())
    payload = "WIFI:T:WPA;S:Home;P:secret;;"

    png = manager.encode(payload, GeneratorOptions(size=300, error_correction="Q"))

    assert manager.decode_bytes(png) == payload


def test_decode_image_missing_file(tmp_path):
    manager = QRCodeManager(AppConfig())

    with pytest.raises(DecodeError):
        manager.decode_image(tmp_path / "missing.png")


def test_decode_qr_payload_trims_and_replaces_invalid_utf8():
    assert QRCodeManager.decode_qr_payload(b"  hello\n") == "hello"
    assert QRCodeManager.decode_qr_payload(b"caf\xff") == "caf\ufffd"
    assert QRCodeManager.decode_qr_payload(" text ") == "text"
