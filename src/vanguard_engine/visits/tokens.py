"""
Capability tokens for visit check-in.

Format: {tag}:{visit_id}:{mac}
- tag: fixed marker, "vv" by default
- visit_id: the visit's UUID
- mac: HMAC-SHA256(qr_secret, visit_id) as hex, truncated to 12 chars

The truncated MAC keeps the QR payload short. Tokens carry no expiry; the
visit's status is the only reuse guard (a checked-in visit cannot be checked
in again).
"""

import base64
import hashlib
import hmac
import io

import qrcode

DEFAULT_TAG = "vv"
DEFAULT_MAC_LENGTH = 12


class TokenCheck:
    """Result of capability token verification."""

    __slots__ = ("valid", "visit_id")

    def __init__(self, valid: bool, visit_id: str | None = None):
        self.valid = valid
        self.visit_id = visit_id


def _compute_mac(visit_id: str, secret: str, length: int) -> str:
    digest = hmac.new(secret.encode(), visit_id.encode(), hashlib.sha256).hexdigest()
    return digest[:length]


def generate_token(
    visit_id: str,
    secret: str,
    tag: str = DEFAULT_TAG,
    mac_length: int = DEFAULT_MAC_LENGTH,
) -> str:
    """Bind a visit id to the service secret."""
    return f"{tag}:{visit_id}:{_compute_mac(visit_id, secret, mac_length)}"


def verify_token(
    token: str,
    secret: str,
    tag: str = DEFAULT_TAG,
    mac_length: int = DEFAULT_MAC_LENGTH,
) -> TokenCheck:
    """
    Check structure and MAC; extract the visit id on success.

    Format errors and MAC mismatches are reported identically.
    """
    if not token or not isinstance(token, str):
        return TokenCheck(False)

    parts = token.strip().split(":")
    if len(parts) != 3 or parts[0] != tag or not parts[1]:
        return TokenCheck(False)

    visit_id, provided = parts[1], parts[2]
    expected = _compute_mac(visit_id, secret, mac_length)
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        return TokenCheck(False)
    return TokenCheck(True, visit_id)


def scan_url(app_url: str, token: str) -> str:
    """URL encoded into the QR image so phone cameras open the scan page."""
    return f"{app_url.rstrip('/')}/scan/{token}"


def token_from_scan(value: str) -> str:
    """Accept either a bare token or a full scan URL."""
    value = value.strip()
    if "/scan/" in value:
        return value.rsplit("/scan/", 1)[1]
    return value


def render_qr_png(content: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(content)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def render_qr_data_url(content: str) -> str:
    encoded = base64.b64encode(render_qr_png(content)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
