# path: graftrack-api/graftrack/services/sensor_fusion.py

"""Sensor fusion: one compass bearing from GPS course and device orientation.

Samples are never smoothed. Each accepted sample overwrites the bearing,
and GPS course and orientation race on a last-write-wins basis.
"""

from __future__ import annotations

import math
from typing import Any, Callable, List, Optional, Protocol

from loguru import logger

from graftrack.errors import PermissionDenied
from graftrack.models.map_models import Notice, NoticeLevel, OrientationSample, PositionFix
from graftrack.utils.geo import compass_from_alpha, normalize_bearing


SOURCE_COMPASS = "compass"
SOURCE_ABSOLUTE = "absolute"
SOURCE_RELATIVE = "relative"
SOURCE_GPS = "gps"


class PlatformSensors(Protocol):
    """Geolocation and orientation capabilities of the host platform.

    Every member is optional at runtime; a missing one degrades the fusion
    unit to its defaults.
    """

    def get_current_position(self) -> PositionFix: ...

    def watch_position(
        self,
        on_fix: Callable[[PositionFix], None],
        on_error: Callable[[Exception], None],
    ) -> Any: ...

    def clear_watch(self, watch_id: Any) -> None: ...

    def add_orientation_listener(self, cb: Callable[[OrientationSample], None]) -> None: ...

    def remove_orientation_listener(self, cb: Callable[[OrientationSample], None]) -> None: ...

    def request_orientation_permission(self) -> bool: ...


def _valid_angle(v: Optional[float]) -> bool:
    return v is not None and not (isinstance(v, float) and math.isnan(v))


def bearing_from_sample(sample: OrientationSample) -> Optional[tuple[float, str]]:
    """Pick the best heading a single orientation event offers."""
    if _valid_angle(sample.compass_heading):
        return normalize_bearing(sample.compass_heading), SOURCE_COMPASS
    if _valid_angle(sample.alpha):
        if sample.absolute:
            return compass_from_alpha(sample.alpha), SOURCE_ABSOLUTE
        # Device-relative: no earth reference, passed through as-is.
        return normalize_bearing(sample.alpha), SOURCE_RELATIVE
    return None


class SensorFusionUnit:
    def __init__(
        self,
        platform: Optional[PlatformSensors] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ) -> None:
        self._platform = platform
        self._on_notice = on_notice
        self._listeners: List[Callable[["SensorFusionUnit"], None]] = []
        self._watch_id: Any = None
        self._orientation_subscribed = False
        self._seen_absolute = False

        self.bearing = 0.0
        self.bearing_source: Optional[str] = None
        self.position: Optional[PositionFix] = None
        self.running = False
        self.permission_denied = False

    # -- listeners ---------------------------------------------------------

    def add_listener(self, cb: Callable[["SensorFusionUnit"], None]) -> None:
        self._listeners.append(cb)

    def remove_listener(self, cb: Callable[["SensorFusionUnit"], None]) -> None:
        if cb in self._listeners:
            self._listeners.remove(cb)

    def _changed(self) -> None:
        for cb in list(self._listeners):
            cb(self)

    def _notice(self, notice: Notice) -> None:
        if self._on_notice is not None:
            self._on_notice(notice)

    def _capability(self, name: str):
        if self._platform is None:
            return None
        fn = getattr(self._platform, name, None)
        return fn if callable(fn) else None

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Subscribe to position and orientation streams. Never raises."""
        if self.running:
            return
        self.running = True

        watch = self._capability("watch_position")
        if watch is not None:
            try:
                self._watch_id = watch(self.handle_position, self.handle_position_error)
            except Exception as e:
                logger.warning(f"Position watch unavailable: {e}")
                self._watch_id = None
        else:
            logger.info("No geolocation on this platform; user marker disabled")

        if self._orientation_allowed():
            add = self._capability("add_orientation_listener")
            if add is not None:
                try:
                    add(self.handle_orientation)
                    self._orientation_subscribed = True
                except Exception as e:
                    logger.warning(f"Orientation listener unavailable: {e}")

    def _orientation_allowed(self) -> bool:
        if self.permission_denied:
            return False
        request = self._capability("request_orientation_permission")
        if request is None:
            # Platform does not gate motion sensors.
            return True
        try:
            granted = bool(request())
        except PermissionDenied:
            granted = False
        except Exception as e:
            logger.warning(f"Orientation permission request failed: {e}")
            granted = False
        if not granted:
            # Terminal for this session; bearing stays at its fallback.
            self.permission_denied = True
            logger.info("Motion sensor permission denied; bearing fixed at 0")
            self._notice(
                Notice(
                    "Permission Denied",
                    "Please enable motion sensors in your device settings",
                    NoticeLevel.ERROR,
                )
            )
            return False
        self._notice(Notice("Compass Activated", "Your device compass is now tracking your heading"))
        return True

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        if self._watch_id is not None:
            clear = self._capability("clear_watch")
            if clear is not None:
                clear(self._watch_id)
            self._watch_id = None
        if self._orientation_subscribed:
            remove = self._capability("remove_orientation_listener")
            if remove is not None:
                remove(self.handle_orientation)
            self._orientation_subscribed = False

    def get_current_position(self) -> Optional[PositionFix]:
        """One-shot fix, or None when unavailable or refused."""
        get = self._capability("get_current_position")
        if get is None:
            return None
        try:
            fix = get()
        except Exception as e:
            logger.warning(f"Error getting location: {e}")
            return None
        if fix is not None:
            self.handle_position(fix)
        return fix

    # -- stream handlers ---------------------------------------------------

    def handle_orientation(self, sample: OrientationSample) -> None:
        picked = bearing_from_sample(sample)
        if picked is None:
            return
        bearing, source = picked
        if source == SOURCE_RELATIVE and self._seen_absolute:
            # The relative stream fires alongside the absolute one; don't let
            # it clobber an earth-referenced reading.
            return
        if source in (SOURCE_COMPASS, SOURCE_ABSOLUTE):
            self._seen_absolute = True
        self.bearing = bearing
        self.bearing_source = source
        logger.debug(f"Bearing {bearing:.1f} from {source}")
        self._changed()

    def handle_position(self, fix: PositionFix) -> None:
        self.position = fix
        if _valid_angle(fix.heading):
            self.bearing = normalize_bearing(fix.heading)
            self.bearing_source = SOURCE_GPS
        self._changed()

    def handle_position_error(self, error: Exception) -> None:
        if isinstance(error, PermissionDenied):
            logger.info("Geolocation permission denied")
            self._notice(Notice("Location unavailable", error.notice, NoticeLevel.ERROR))
        else:
            logger.warning(f"Error tracking location: {error}")
