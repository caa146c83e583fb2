"""PNG QR code rendering with the qrcode library."""

import base64
import io
from dataclasses import dataclass

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from barqpix.services.qr_tokens import QRImageRenderer


@dataclass
class QRCodeRenderer(QRImageRenderer):
    """Renders landing URLs to base64 PNG data URLs."""

    box_size: int = 10
    border: int = 2

    def render(self, url: str) -> str:
        """Return a data URL for the QR image encoding the URL."""
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(url)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
