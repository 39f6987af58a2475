"""Tests for QR code rendering."""

import base64

import pytest

from dropnow.services.qr import QRRenderError, encode_as_scannable_image, render_png, to_data_uri

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def test_render_png():
    png = render_png("http://localhost:8000/api/mobile/connect?token=abc")
    assert png.startswith(PNG_MAGIC)


def test_oversized_payload():
    with pytest.raises(QRRenderError):
        render_png("x" * 5000)


def test_to_data_uri():
    uri = to_data_uri(b"abc")
    assert uri == "data:image/png;base64," + base64.b64encode(b"abc").decode()


async def test_encode_as_scannable_image():
    uri = await encode_as_scannable_image("http://localhost:8000/api/mobile/connect?token=abc")
    prefix, encoded = uri.split(",", 1)
    assert prefix == "data:image/png;base64"
    assert base64.b64decode(encoded).startswith(PNG_MAGIC)
