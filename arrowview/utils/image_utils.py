import base64
import binascii
import io
import re
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from arrowview.config import settings

_DATA_URL_RE = re.compile(r"^data:(image/[^;]+);base64,(.*)$", re.IGNORECASE | re.DOTALL)


def encode_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode raw image bytes as ``data:<mime>;base64,<payload>``"""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """
    Decode a data URL (or bare base64 payload) into (bytes, mime_type).
    Bare payloads are assumed to be PNG.
    Raises ValueError when the payload is not valid base64.
    """
    s = data_url.strip()
    m = _DATA_URL_RE.match(s)
    if m:
        mime_type, payload = m.group(1).lower(), m.group(2)
    else:
        mime_type, payload = "image/png", s
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


def resize_image(image: Image.Image, max_size: int = 2048) -> Image.Image:
    """Resize image maintaining aspect ratio"""
    width, height = image.size
    if width <= max_size and height <= max_size:
        return image

    if width > height:
        new_width = max_size
        new_height = int(height * (max_size / width))
    else:
        new_height = max_size
        new_width = int(width * (max_size / height))

    return image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def is_blank_image(image: Image.Image, threshold: float = None) -> bool:
    """True when the image is (nearly) a single flat color, e.g. map tiles not loaded yet"""
    if threshold is None:
        threshold = settings.BLANK_CAPTURE_STDDEV
    arr = np.asarray(image.convert("L"), dtype=np.float32)
    return arr.size == 0 or float(arr.std()) < threshold


def normalize_capture(data: bytes, max_size: int = None) -> Optional[bytes]:
    """
    Turn a raw surface snapshot into PNG bytes suitable as model input.
    Returns None if the bytes are not a decodable image or the image is blank.
    """
    if max_size is None:
        max_size = settings.MAX_IMAGE_SIZE
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError):
        return None

    if is_blank_image(rgb):
        return None

    rgb = resize_image(rgb, max_size)
    buffer = io.BytesIO()
    rgb.save(buffer, format="PNG")
    return buffer.getvalue()
