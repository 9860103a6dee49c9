#!/usr/bin/env python3
"""
Serialise captcha canvases to compressed image bytes with OpenCV
"""

import numpy as np
import cv2

from error_handling import EncodingError, InvalidArgument

DEFAULT_FORMAT = '.png'
DEFAULT_QUALITY = 0.8

MIME_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
}


def encoder_available(fmt: str = DEFAULT_FORMAT) -> bool:
    """True when this OpenCV build can write the given format"""
    if fmt not in MIME_TYPES:
        return False
    return bool(cv2.haveImageWriter('captcha' + fmt))


def _encode_params(fmt: str, quality: float) -> list:
    if fmt == '.png':
        # 0.8 of the maximum compression effort
        return [cv2.IMWRITE_PNG_COMPRESSION, int(round(quality * 9))]
    return [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))]


def encode_image(canvas: np.ndarray, fmt: str = DEFAULT_FORMAT, quality: float = DEFAULT_QUALITY) -> bytes:
    """Encode a 24-bit BGR canvas, raising EncodingError when no writer exists"""
    if canvas.ndim != 3 or canvas.shape[2] != 3 or canvas.dtype != np.uint8:
        raise InvalidArgument(
            f"Canvas must be an HxWx3 uint8 array, got shape {canvas.shape} dtype {canvas.dtype}"
        )
    if not encoder_available(fmt):
        raise EncodingError(f"No image writer available for format {fmt!r}")

    ok, buffer = cv2.imencode(fmt, canvas, _encode_params(fmt, quality))
    if not ok:
        raise EncodingError(f"OpenCV failed to encode canvas as {fmt}")
    return buffer.tobytes()


def decode_image(data: bytes) -> np.ndarray:
    """Decode image bytes back to a BGR array"""
    if not data:
        raise EncodingError("Payload is empty")
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise EncodingError("Payload is not a decodable image")
    return image


def mime_type(fmt: str = DEFAULT_FORMAT) -> str:
    return MIME_TYPES.get(fmt, 'application/octet-stream')
