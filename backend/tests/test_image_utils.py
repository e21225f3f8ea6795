import base64
import io
import os

import pytest
from PIL import Image

from errors import InvalidPayloadError, UnsupportedFormatError
from image_utils import (
    data_url_to_bytes,
    normalize_image_payload,
    parse_data_url,
    pil_to_data_url,
)


def test_parse_data_url():
    assert parse_data_url("data:image/png;base64,AAA=") == ("image/png", "AAA=")


@pytest.mark.parametrize("bad", [
    "data:image/png,AAA=",
    "data:;base64,AAA=",
    "data:image/png;utf8,AAA=",
])
def test_malformed_data_url_is_unsupported(bad):
    with pytest.raises(UnsupportedFormatError):
        normalize_image_payload(bad)


def test_data_url_keeps_mime_and_canonical_payload():
    image = normalize_image_payload("data:image/png;base64,AAA=")
    assert image.mime_type == "image/png"
    assert image.payload == "AAA="
    assert image.data_url == "data:image/png;base64,AAA="


def test_raw_base64_defaults_to_jpeg():
    raw = base64.b64encode(b"\xff\xd8\xff\xe0jpeg").decode()
    assert normalize_image_payload(raw).data_url == f"data:image/jpeg;base64,{raw}"


def test_line_wrapped_payload_is_cleaned():
    original = os.urandom(300)
    encoded = base64.b64encode(original).decode()
    wrapped = "\n".join(encoded[i:i + 76] for i in range(0, len(encoded), 76))

    image = normalize_image_payload(f"data:image/webp;base64,{wrapped}\r\n  ")

    assert image.payload == encoded
    assert image.to_bytes() == original


def test_arbitrary_bytes_survive_canonicalization():
    for size in (1, 2, 3, 1024):
        original = os.urandom(size)
        image = normalize_image_payload(base64.b64encode(original).decode())
        assert base64.b64decode(image.payload) == original


@pytest.mark.parametrize("empty", ["", "   ", "\n\t", "data:image/png;base64,", "data:image/png;base64,  \n"])
def test_empty_payload_is_invalid(empty):
    with pytest.raises(InvalidPayloadError):
        normalize_image_payload(empty)


def test_unpadded_payload_is_repadded():
    image = normalize_image_payload("data:image/png;base64,AAA")
    assert image.payload == "AAA="
    assert image.to_bytes() == b"\x00\x00"


@pytest.mark.parametrize("garbage", ["not base64!!", "A", "AAAAA", "@@@@"])
def test_undecodable_payload_is_invalid(garbage):
    with pytest.raises(InvalidPayloadError):
        normalize_image_payload(garbage)


def test_pil_frame_round_trip():
    frame = Image.new("RGB", (64, 48), color="red")
    data_url = pil_to_data_url(frame)

    assert data_url.startswith("data:image/jpeg;base64,")
    mime_type, image_bytes = data_url_to_bytes(data_url)
    assert mime_type == "image/jpeg"
    assert image_bytes[:2] == b"\xff\xd8"
    assert Image.open(io.BytesIO(image_bytes)).size == (64, 48)


def test_png_frame_gets_png_mime():
    frame = Image.new("RGB", (8, 8), color="blue")
    assert pil_to_data_url(frame, format="PNG").startswith("data:image/png;base64,")
