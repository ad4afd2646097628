"""Frame payload checks and transcoding.

The inference API returns raw image bytes.  Before a frame is accepted the
payload is opened with Pillow to make sure it really is a decodable image;
the bytes are then base64-encoded for the JSON response and discarded.
"""

from __future__ import annotations

import base64
import io
import logging

from PIL import Image, UnidentifiedImageError

from .errors import UpstreamTerminalError

logger = logging.getLogger(__name__)


def verify_image(data: bytes) -> str:
    """Check that ``data`` is a decodable image.

    Args:
        data: Raw payload returned by the inference API.

    Returns:
        The Pillow format name of the image (e.g. ``"PNG"``, ``"JPEG"``).

    Raises:
        UpstreamTerminalError: If the payload is empty or not an image.
    """
    if not data:
        raise UpstreamTerminalError("Inference API returned an empty image payload")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format or "UNKNOWN"
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UpstreamTerminalError(
            "Inference API returned an image payload that could not be decoded",
            details=str(e),
        ) from e

    return image_format


def encode_frame(data: bytes) -> str:
    """Verify a frame payload and return it base64-encoded.

    Args:
        data: Raw image bytes for one frame.

    Returns:
        ASCII base64 string suitable for a ``data:`` URL.

    Raises:
        UpstreamTerminalError: If the payload is not a decodable image.
    """
    image_format = verify_image(data)
    logger.debug(f"Encoding {image_format} frame ({len(data)} bytes)")
    return base64.b64encode(data).decode("ascii")
