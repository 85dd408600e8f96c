import io

import pytest
from PIL import Image

from arrowview.utils.image_utils import (
    decode_data_url,
    encode_data_url,
    is_blank_image,
    normalize_capture,
    resize_image,
)


def test_data_url_round_trip():
    data = bytes(range(256)) * 3
    url = encode_data_url(data)
    assert url.startswith("data:image/png;base64,")
    assert decode_data_url(url) == (data, "image/png")


def test_decode_bare_base64_and_other_mime():
    assert decode_data_url("aW1n") == (b"img", "image/png")
    assert decode_data_url("data:image/JPEG;base64,aW1n") == (b"img", "image/jpeg")


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_data_url("data:image/png;base64,@@@@")


def test_resize_keeps_aspect_ratio():
    img = Image.new("RGB", (4000, 2000))
    assert resize_image(img, 1000).size == (1000, 500)
    small = Image.new("RGB", (10, 10))
    assert resize_image(small, 1000) is small


def test_blank_detection():
    assert is_blank_image(Image.new("RGB", (32, 32), (240, 240, 240)))
    checker = Image.new("RGB", (32, 32), (0, 0, 0))
    for x in range(0, 32, 2):
        checker.putpixel((x, 0), (255, 255, 255))
    assert not is_blank_image(checker, threshold=1.0)


def test_normalize_capture_downscales_and_converts():
    img = Image.new("RGBA", (2048, 1024), (10, 20, 30, 255))
    for x in range(0, 2048, 8):
        for y in range(0, 1024, 8):
            img.putpixel((x, y), (250, 250, 250, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    png = normalize_capture(buffer.getvalue(), max_size=512)
    with Image.open(io.BytesIO(png)) as out:
        assert out.format == "PNG"
        assert out.mode == "RGB"
        assert out.size == (512, 256)
