# ============================================================
# image_utils.py - Image Payload Normalization Utilities
# ============================================================
# Turns whatever the browser sent (data URL or raw base64, maybe
# line-wrapped) into one canonical data URL, and encodes captured
# PIL frames for the trip back.
# ============================================================

import base64
import binascii
import io
import re
from dataclasses import dataclass

from PIL import Image

from errors import InvalidPayloadError, UnsupportedFormatError

DEFAULT_MIME_TYPE = "image/jpeg"
_FORMAT_MIME = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}

_DATA_URL_RE = re.compile(r"data:([^;]+);base64,(.*)", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedImage:
    mime_type: str
    payload: str  # canonical base64, no prefix

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.payload}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.payload)


def parse_data_url(data_url: str) -> tuple[str, str]:
    """Split "data:<mime>;base64,<payload>" into (mime, payload)."""
    match = _DATA_URL_RE.fullmatch(data_url)
    if not match:
        raise UnsupportedFormatError("Unsupported data URL format")
    return match.group(1), match.group(2)


def normalize_image_payload(image_b64: str, default_mime: str = DEFAULT_MIME_TYPE) -> NormalizedImage:
    """
    Validate and canonicalize an inbound image payload.

    Steps, in order:
    1. Parse the data URL prefix if there is one (strict).
    2. Strip all whitespace from the base64 body.
    3. Decode; empty or undecodable input is rejected.
    4. Re-encode so only a clean payload travels onward.

    Raises:
        UnsupportedFormatError: starts with "data:" but is not a base64 data URL
        InvalidPayloadError: nothing decodable left after cleanup
    """
    mime_type = default_mime
    payload = image_b64 or ""

    if payload.startswith("data:"):
        mime_type, payload = parse_data_url(payload)

    payload = _WHITESPACE_RE.sub("", payload)
    # Browsers sometimes drop trailing "=" padding
    payload += "=" * (-len(payload) % 4)

    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidPayloadError("Invalid base64 payload for screenshot")
    if not image_bytes:
        raise InvalidPayloadError("Invalid base64 payload for screenshot: empty decoded buffer")

    return NormalizedImage(
        mime_type=mime_type,
        payload=base64.b64encode(image_bytes).decode("ascii"),
    )


def data_url_to_bytes(data_url: str) -> tuple[str, bytes]:
    """Return (mime, raw bytes) from an already-canonical data URL."""
    mime_type, payload = parse_data_url(data_url)
    return mime_type, base64.b64decode(payload)


def pil_to_b64(image: Image.Image, format: str = "JPEG", quality: int = 85) -> str:
    """Convert a PIL Image to a base64 string (without data URI prefix)."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format=format, quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


def pil_to_data_url(image: Image.Image, format: str = "JPEG", quality: int = 85) -> str:
    """Convert a PIL Image to a data URL ready to PUT back to the server."""
    mime_type = _FORMAT_MIME.get(format.upper(), DEFAULT_MIME_TYPE)
    return f"data:{mime_type};base64,{pil_to_b64(image, format=format, quality=quality)}"
