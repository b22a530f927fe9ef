"""JPEG/PNG encoding and decoding through Pillow."""

import io

from .exceptions import CodecError

DEFAULT_QUALITY = 0.9


def _pillow():
    try:
        from PIL import Image
    except ImportError:
        raise CodecError("Pillow is required for image encoding: pip install pixcache[images]")
    return Image


def encode_image(image, as_jpeg=True, quality=DEFAULT_QUALITY):
    """Encode a PIL image to JPEG (quality 0.0-1.0) or PNG bytes."""
    if not 0.0 <= quality <= 1.0:
        raise CodecError(f"JPEG quality must be between 0.0 and 1.0, got {quality}")
    _pillow()
    buf = io.BytesIO()
    try:
        if as_jpeg:
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            image.save(buf, format="JPEG", quality=max(1, round(quality * 95)))
        else:
            image.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise CodecError(f"Could not encode image: {e}")
    return buf.getvalue()


def decode_image(data):
    """Decode bytes into a fully loaded PIL image."""
    Image = _pillow()
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise CodecError(f"Could not decode image: {e}")
    return image
