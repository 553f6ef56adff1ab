"""
Image processing utilities.
"""

import asyncio
import base64
import logging
from typing import TYPE_CHECKING, Optional, Tuple

import cv2
import numpy as np

from config import BBOX_SCALE, CROP_PADDING, IMAGE_DECODE_TIMEOUT

if TYPE_CHECKING:
    from pipeline.models import BoundingBox

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG) to an OpenCV BGR array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Could not decode image")
    return image


def encode_png(image: np.ndarray) -> bytes:
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image")
    return buffer.tobytes()


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def decode_data_url(url: str) -> Tuple[bytes, str]:
    """
    Split a data URL into (bytes, mime type).

    A bare base64 string is accepted and treated as PNG.
    """
    mime_type = "image/png"
    payload = url
    if url.startswith("data:"):
        header, _, payload = url.partition(",")
        mime_type = header[5:].split(";")[0] or mime_type
    return base64.b64decode(payload), mime_type


def padded_region(
    bbox: "BoundingBox",
    width: int,
    height: int,
    padding: float = CROP_PADDING,
) -> Optional[Tuple[int, int, int, int]]:
    """
    Convert a normalized box to a pixel rectangle (x1, y1, x2, y2).

    The box is padded by `padding` of its own size on each side and
    clamped to the image. Returns None if the box degenerates.
    """
    if bbox.is_degenerate:
        return None
    box = bbox.normalized()

    raw_w = (box.xmax - box.xmin) / BBOX_SCALE * width
    raw_h = (box.ymax - box.ymin) / BBOX_SCALE * height
    pad_x = raw_w * padding
    pad_y = raw_h * padding

    x1 = max(0, int(round(box.xmin / BBOX_SCALE * width - pad_x)))
    y1 = max(0, int(round(box.ymin / BBOX_SCALE * height - pad_y)))
    x2 = min(width, int(round(box.xmax / BBOX_SCALE * width + pad_x)))
    y2 = min(height, int(round(box.ymax / BBOX_SCALE * height + pad_y)))

    if x2 - x1 < 1 or y2 - y1 < 1:
        return None
    return x1, y1, x2, y2


def crop_region(image: np.ndarray, bbox: "BoundingBox", padding: float = CROP_PADDING) -> Optional[np.ndarray]:
    """Crop a normalized box (with padding) out of a decoded image."""
    h, w = image.shape[:2]
    region = padded_region(bbox, w, h, padding)
    if region is None:
        return None
    x1, y1, x2, y2 = region
    return image[y1:y2, x1:x2]


def _crop_to_png(image_data: bytes, bbox: "BoundingBox") -> Optional[bytes]:
    image = decode_image(image_data)
    cropped = crop_region(image, bbox)
    if cropped is None:
        return None
    return encode_png(cropped)


async def crop_diagram(
    image_data: bytes,
    bbox: Optional["BoundingBox"],
    width: int,
    height: int,
    timeout: float = IMAGE_DECODE_TIMEOUT,
) -> Optional[str]:
    """
    Crop a diagram region from a page image.

    Args:
        image_data: Encoded page image
        bbox: Normalized [ymin, xmin, ymax, xmax] box
        width: Page width in pixels, as rendered
        height: Page height in pixels, as rendered
        timeout: Seconds allowed for decoding and cropping

    Returns:
        PNG data URL of the crop, or None if the box degenerates, the
        image cannot be decoded, or the timeout expires.
    """
    if not image_data or bbox is None or bbox.is_degenerate:
        return None
    if padded_region(bbox, width, height) is None:
        return None

    try:
        png = await asyncio.wait_for(asyncio.to_thread(_crop_to_png, image_data, bbox), timeout)
    except asyncio.TimeoutError:
        logger.warning("Image decode timed out after %.0fs", timeout)
        return None
    except (ValueError, cv2.error) as e:
        logger.warning("Crop failed: %s", e)
        return None

    if png is None:
        return None
    return to_data_url(png)
