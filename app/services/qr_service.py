"""QR code detection on slip images."""

import io
import logging
from typing import Optional

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

# Phone screenshots of slips are large enough as-is; smaller images are
# upscaled once before giving up.
MIN_SCAN_EDGE = 800


def _load_bgr(image_bytes: bytes) -> Optional[np.ndarray]:
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    return cv2.cvtColor(np.asarray(rgb), cv2.COLOR_RGB2BGR)


def _scan(detector: cv2.QRCodeDetector, image: np.ndarray) -> Optional[str]:
    try:
        data, _points, _ = detector.detectAndDecode(image)
    except cv2.error as e:
        logger.debug("QR scan raised %s", e)
        return None
    return data or None


def decode_qr(image_bytes: bytes) -> Optional[str]:
    """Return the payload of the first QR code found in the image, or None."""
    if not image_bytes:
        return None

    image = _load_bgr(image_bytes)
    if image is None:
        logger.info("Image bytes could not be decoded as an image")
        return None

    detector = cv2.QRCodeDetector()
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    payload = _scan(detector, image) or _scan(detector, gray)
    if payload is None and min(gray.shape[:2]) < MIN_SCAN_EDGE:
        upscaled = cv2.resize(gray, None, fx=2, fy=2, interpolation=cv2.INTER_NEAREST)
        payload = _scan(detector, upscaled)
    return payload


async def decode_qr_async(image_bytes: bytes) -> Optional[str]:
    return await run_in_threadpool(decode_qr, image_bytes)
