"""QR code rendering for share links."""

import base64
import io

import qrcode
from qrcode.image.pil import PilImage


def qr_data_url(content: str, box_size: int = 8, border: int = 2) -> str:
    """Render ``content`` as a PNG QR code and encode it as a data URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(image_factory=PilImage)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{b64}"
