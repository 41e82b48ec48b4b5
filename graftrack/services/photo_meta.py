# path: graftrack-api/graftrack/services/photo_meta.py

from __future__ import annotations

import io
from typing import Optional, Union

from loguru import logger
from PIL import Image, UnidentifiedImageError

from graftrack.utils.geo import normalize_bearing


GPS_IFD = 0x8825
GPS_IMG_DIRECTION = 0x0011


def extract_photo_heading(data: Union[bytes, bytearray]) -> Optional[float]:
    """Return the EXIF GPSImgDirection of a photo in degrees, or None.

    Photos without EXIF, without a GPS block, or that aren't images at all
    simply yield None.
    """
    try:
        with Image.open(io.BytesIO(bytes(data))) as img:
            gps = img.getexif().get_ifd(GPS_IFD)
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.debug(f"No EXIF heading: {e}")
        return None

    raw = gps.get(GPS_IMG_DIRECTION) if gps else None
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if value != value:  # NaN from a 0/0 rational
        return None
    return normalize_bearing(value)
