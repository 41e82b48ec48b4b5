# path: graftrack-api/graftrack/services/viewport.py

"""Map viewport: pan, zoom and presentation-layer rotation.

Rotation is a transform on the rendered layer only; tiles and the
coordinate system stay north-up. Markers and popups therefore have to be
counter-rotated separately (see ``markers.MarkerRenderer.apply_bearing``).
"""

from __future__ import annotations

import math
from typing import Any, Callable, List, Optional, Sequence

from loguru import logger

from graftrack.models.entity_models import GeoPoint
from graftrack.models.map_models import TouchPoint, ViewportState
from graftrack.services.map_engine import MapEngine
from graftrack.utils.geo import angle_deg, distance_px, normalize_bearing, screen_to_latlng


PINCH_THRESHOLD = 0.10  # re-zoom once the finger spread changes by 10%
TAP_SLOP_PX = 10.0
USER_ZOOM = 17

ARMED_CURSOR = "crosshair"
DEFAULT_CURSOR = ""


class MapViewportController:
    def __init__(
        self,
        engine: MapEngine,
        center: GeoPoint,
        zoom: float = 15,
        min_zoom: float = 1,
        max_zoom: float = 19,
        size_px: tuple = (390.0, 844.0),
    ) -> None:
        self._engine = engine
        self._mounted = False
        self.center = center
        self.min_zoom = float(min_zoom)
        self.max_zoom = float(max_zoom)
        self.zoom = self._clamp_zoom(zoom)
        self.width_px, self.height_px = (float(size_px[0]), float(size_px[1]))
        self._bearing = 0.0
        self._cursor = DEFAULT_CURSOR

        self._bearing_listeners: List[Callable[[float], None]] = []
        self._tap_listeners: List[Callable[[GeoPoint], None]] = []

        # Two-finger gesture state
        self._start_angle: Optional[float] = None
        self._last_distance: Optional[float] = None
        self._start_bearing = 0.0

        # Single-pointer tap/drag state
        self._pointer_down: Optional[TouchPoint] = None
        self._pointer_last: Optional[TouchPoint] = None
        self._dragged = False
        self._multi_touch_seen = False

    # -- mounting ----------------------------------------------------------

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self, container: Any) -> bool:
        """Attach to the engine. A missing container is not an error."""
        if self._mounted:
            return True
        try:
            ok = self._engine.mount(container)
        except Exception as e:
            logger.warning(f"Map engine failed to initialize: {e}")
            ok = False
        if not ok:
            logger.debug("Map container not ready; viewport idle until mounted")
            return False
        self._mounted = True
        self._engine.set_view(self.center, self.zoom)
        self._engine.on_click(self._relay_tap)
        self._engine.apply_viewport_transform(self._bearing)
        self._engine.set_cursor(self._cursor)
        return True

    def unmount(self) -> None:
        if not self._mounted:
            return
        self._engine.on_click(None)
        self._engine.unmount()
        self._mounted = False

    def resize(self, width_px: float, height_px: float) -> None:
        self.width_px, self.height_px = float(width_px), float(height_px)

    # -- listeners ---------------------------------------------------------

    def on_bearing_change(self, cb: Callable[[float], None]) -> None:
        self._bearing_listeners.append(cb)

    def on_tap(self, cb: Callable[[GeoPoint], None]) -> None:
        self._tap_listeners.append(cb)

    # -- rotation ----------------------------------------------------------

    def get_bearing(self) -> float:
        return self._bearing

    def set_bearing(self, degrees: float) -> None:
        self._set_bearing(normalize_bearing(degrees), animate=False)

    def reset_bearing(self) -> None:
        # Model snaps to north immediately; the engine animates the transition.
        self._set_bearing(0.0, animate=True)

    def _set_bearing(self, bearing: float, animate: bool) -> None:
        self._bearing = bearing
        if self._mounted:
            self._engine.apply_viewport_transform(bearing, animate=animate)
        for cb in list(self._bearing_listeners):
            cb(bearing)

    # -- pan / zoom --------------------------------------------------------

    def _clamp_zoom(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, float(zoom)))

    def set_view(self, center: GeoPoint, zoom: Optional[float] = None) -> None:
        self.center = center
        if zoom is not None:
            self.zoom = self._clamp_zoom(zoom)
        if self._mounted:
            self._engine.set_view(self.center, self.zoom)

    def set_zoom(self, zoom: float) -> None:
        self.set_view(self.center, zoom)

    def center_on_user(self, position: Optional[GeoPoint]) -> bool:
        if position is None:
            return False
        self.set_view(position, USER_ZOOM)
        return True

    def pan_by(self, dx_px: float, dy_px: float) -> None:
        """Move the view so content follows a drag of (dx, dy) screen pixels."""
        lat, lng = screen_to_latlng(
            self.width_px / 2.0 - dx_px,
            self.height_px / 2.0 - dy_px,
            self.center.latitude,
            self.center.longitude,
            self.zoom,
            self.width_px,
            self.height_px,
        )
        self.set_view(GeoPoint(latitude=lat, longitude=lng))

    # -- cursor ------------------------------------------------------------

    @property
    def cursor(self) -> str:
        return self._cursor

    def set_armed(self, armed: bool) -> None:
        self._cursor = ARMED_CURSOR if armed else DEFAULT_CURSOR
        if self._mounted:
            self._engine.set_cursor(self._cursor)

    # -- touch gestures ----------------------------------------------------

    def touch_start(self, touches: Sequence[TouchPoint]) -> None:
        if len(touches) == 2:
            a, b = touches
            self._start_angle = angle_deg(a.x, a.y, b.x, b.y)
            self._last_distance = distance_px(a.x, a.y, b.x, b.y)
            self._start_bearing = self._bearing
            self._multi_touch_seen = True
            self._pointer_down = None
        elif len(touches) == 1 and not self._multi_touch_seen:
            self._pointer_down = touches[0]
            self._pointer_last = touches[0]
            self._dragged = False

    def touch_move(self, touches: Sequence[TouchPoint]) -> None:
        if len(touches) == 2 and self._start_angle is not None:
            self._rotate_and_pinch(touches[0], touches[1])
        elif len(touches) == 1 and self._pointer_down is not None:
            p = touches[0]
            if distance_px(self._pointer_down.x, self._pointer_down.y, p.x, p.y) > TAP_SLOP_PX:
                self._dragged = True
            if self._dragged and self._pointer_last is not None:
                self.pan_by(p.x - self._pointer_last.x, p.y - self._pointer_last.y)
            self._pointer_last = p

    def touch_end(self, remaining: Sequence[TouchPoint] = (), lifted: Optional[TouchPoint] = None) -> None:
        if len(remaining) < 2:
            self._start_angle = None
            self._last_distance = None

        if remaining:
            return

        down, dragged, multi = self._pointer_down, self._dragged, self._multi_touch_seen
        self._pointer_down = None
        self._pointer_last = None
        self._dragged = False
        self._multi_touch_seen = False

        if down is None or dragged or multi:
            return
        up = lifted or down
        if distance_px(down.x, down.y, up.x, up.y) > TAP_SLOP_PX:
            return
        self.tap(up.x, up.y)

    def _rotate_and_pinch(self, a: TouchPoint, b: TouchPoint) -> None:
        current_angle = angle_deg(a.x, a.y, b.x, b.y)
        delta = current_angle - self._start_angle
        self._set_bearing(normalize_bearing(self._start_bearing + delta), animate=False)

        # Pinch is evaluated in the same gesture; no mutual exclusion with rotate.
        current_distance = distance_px(a.x, a.y, b.x, b.y)
        if current_distance <= 0:
            return
        if not self._last_distance:
            self._last_distance = current_distance
        else:
            ratio = current_distance / self._last_distance
            if ratio > 1.0 + PINCH_THRESHOLD or ratio < 1.0 - PINCH_THRESHOLD:
                self.set_zoom(self.zoom + math.log2(ratio))
                self._last_distance = current_distance

    # -- taps --------------------------------------------------------------

    def tap(self, px: float, py: float) -> GeoPoint:
        """Register a tap at a container pixel and relay its coordinate."""
        lat, lng = screen_to_latlng(
            px,
            py,
            self.center.latitude,
            self.center.longitude,
            self.zoom,
            self.width_px,
            self.height_px,
        )
        point = GeoPoint(latitude=lat, longitude=lng)
        self._relay_tap(point)
        return point

    def _relay_tap(self, point: GeoPoint) -> None:
        logger.debug(f"Map clicked at: {point.latitude:.6f}, {point.longitude:.6f}")
        for cb in list(self._tap_listeners):
            cb(point)

    def state(self) -> ViewportState:
        return ViewportState(
            center=self.center,
            zoom=self.zoom,
            bearing=self._bearing,
            cursor=self._cursor,
            width_px=self.width_px,
            height_px=self.height_px,
        )

