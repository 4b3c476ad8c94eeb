"""Transfer URL helpers and the QR encode/decode seams.

The QR image carries a URL like `https://stusave.app/?id=ab12cd`, never the
application state itself.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from typing import Protocol

import httpx
import qrcode
from qrcode.constants import ERROR_CORRECT_M

from .transfer_errors import InvalidQrPayloadError
from .transfer_store import DEFAULT_ALPHABET


class QrDecoder(Protocol):
    """Live QR source (camera stream). Results may arrive from another thread."""

    def start(
        self,
        on_result: Callable[[str], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        ...

    def stop(self) -> None:
        ...


# Static image -> decoded text. Raises when no code is found.
ImageDecoder = Callable[[bytes], str]


def build_transfer_url(base_url: str, transfer_id: str) -> str:
    return str(httpx.URL(base_url).copy_merge_params({"id": transfer_id}))


def parse_transfer_url(text: str, alphabet: str = DEFAULT_ALPHABET) -> str:
    """Extract the transfer id from decoded QR text."""
    raw = (text or "").strip()
    if not raw:
        raise InvalidQrPayloadError()

    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, ValueError) as exc:
        raise InvalidQrPayloadError() from exc

    if url.scheme not in {"http", "https"} or not url.host:
        raise InvalidQrPayloadError()

    transfer_id = url.params.get("id")
    if not transfer_id or any(ch not in alphabet for ch in transfer_id):
        raise InvalidQrPayloadError()

    return transfer_id


def render_qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()
