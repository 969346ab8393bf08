"""QR codes for wallet addresses."""

import io

import segno
from aiogram.types import BufferedInputFile


def address_qr(address: str) -> BufferedInputFile:
    """PNG QR code of ``address``, ready to send as a photo."""
    buffer = io.BytesIO()
    segno.make(address, error="h").save(buffer, kind="png", scale=8, border=1)
    return BufferedInputFile(buffer.getvalue(), filename="address.png")
