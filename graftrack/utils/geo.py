# path: graftrack-api/graftrack/utils/geo.py

from __future__ import annotations

from typing import Tuple
import math


TILE_SIZE_PX = 256
# Web Mercator clips latitude here so the projected world is square.
MAX_MERCATOR_LAT = 85.05112878


def normalize_bearing(deg: float) -> float:
    # Python's % is already non-negative for a positive modulus; the second
    # pass folds 360.0 produced by tiny negative inputs (-1e-15 % 360 == 360.0).
    b = ((float(deg) % 360.0) + 360.0) % 360.0
    return 0.0 if b >= 360.0 else b


def compass_from_alpha(alpha: float) -> float:
    # Device alpha runs counter-clockwise; compass bearings run clockwise.
    return normalize_bearing(360.0 - alpha)


def angle_deg(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.degrees(math.atan2(y2 - y1, x2 - x1))


def distance_px(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def world_size_px(zoom: float) -> float:
    return TILE_SIZE_PX * (2.0 ** zoom)


def latlng_to_world_px(lat: float, lng: float, zoom: float) -> Tuple[float, float]:
    """Project to Web Mercator pixel space at ``zoom`` (origin top-left)."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    size = world_size_px(zoom)
    x = (lng + 180.0) / 360.0 * size
    s = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + s) / (1 - s)) / (4 * math.pi)) * size
    return x, y


def world_px_to_latlng(x: float, y: float, zoom: float) -> Tuple[float, float]:
    size = world_size_px(zoom)
    lng = x / size * 360.0 - 180.0
    n = math.pi - 2.0 * math.pi * y / size
    lat = math.degrees(math.atan(math.sinh(n)))
    # Wrap longitude back into [-180, 180] after panning across the antimeridian.
    lng = ((lng + 180.0) % 360.0) - 180.0
    return max(-90.0, min(90.0, lat)), lng


def screen_to_latlng(
    px: float,
    py: float,
    center_lat: float,
    center_lng: float,
    zoom: float,
    width: float,
    height: float,
) -> Tuple[float, float]:
    """Inverse-project a container pixel through the current pan/zoom.

    Rotation is applied to the rendered layer only, so it plays no part here.
    """
    cx, cy = latlng_to_world_px(center_lat, center_lng, zoom)
    wx = cx + (px - width / 2.0)
    wy = cy + (py - height / 2.0)
    return world_px_to_latlng(wx, wy, zoom)


def format_latlng(lat: float, lng: float, precision: int = 4) -> str:
    # Display-only rounding; stored values are never touched.
    return f"{lat:.{precision}f}, {lng:.{precision}f}"
