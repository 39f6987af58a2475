"""QR code rendering for pairing links."""

import asyncio
import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from dropnow.config import settings


class QRRenderError(Exception):
    """QR code could not be rendered."""

    pass


def render_png(data: str) -> bytes:
    """Encode ``data`` as a PNG QR code."""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=settings.qr_box_size,
        border=settings.qr_border,
    )
    # qrcode 8 reports an over-capacity payload as ValueError("Invalid version ...")
    try:
        qr.add_data(data)
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        raise QRRenderError(f"Payload too large for a QR code ({len(data)} chars)") from e

    buffer = BytesIO()
    qr.make_image(image_factory=PilImage).save(buffer)
    return buffer.getvalue()


def to_data_uri(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


async def encode_as_scannable_image(url: str) -> str:
    """Render a URL as a PNG data URI without blocking the event loop."""
    png = await asyncio.to_thread(render_png, url)
    return to_data_uri(png)
