# path: graftrack-api/graftrack/models/map_models.py

"""Client-side map state: sensor samples, placements, markers, notices."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from graftrack.models.entity_models import GeoPoint


class PlacementMode(str, Enum):
    LOCATION = "location"
    PROSPECT = "prospect"


class PlacementState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    PENDING = "pending"


class PendingPlacement(BaseModel):
    """Unsaved candidate; never persisted."""

    model_config = ConfigDict(frozen=True)

    position: GeoPoint
    mode: PlacementMode


@dataclass(frozen=True, slots=True)
class OrientationSample:
    """One device orientation event.

    Attributes:
        compass_heading: Platform compass heading (0 = north, clockwise),
            e.g. ``webkitCompassHeading``. Authoritative when present.
        alpha: Rotation about the z axis in degrees, counter-clockwise.
        absolute: True when ``alpha`` is earth-referenced.
    """

    compass_heading: Optional[float] = None
    alpha: Optional[float] = None
    absolute: bool = False


@dataclass(frozen=True, slots=True)
class PositionFix:
    """A geolocation fix. ``heading`` is course over ground, often None or NaN."""

    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    heading: Optional[float] = None
    speed_mps: Optional[float] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


@dataclass(frozen=True, slots=True)
class TouchPoint:
    x: float
    y: float


class MarkerKind(str, Enum):
    USER = "user"
    LOCATION = "location"
    PROSPECT = "prospect"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class Glyph:
    name: str
    color: str
    # Rotation baked into the glyph itself (the user arrow), not the
    # counter-rotation applied to the whole marker element.
    rotation_deg: float = 0.0
    size_px: Tuple[int, int] = (25, 41)
    anchor_px: Tuple[int, int] = (12, 41)


@dataclass(slots=True)
class MarkerSpec:
    """What the map engine needs to draw one marker."""

    key: str
    kind: MarkerKind
    position: GeoPoint
    glyph: Glyph
    popup_html: str = ""
    z_index_offset: int = 0
    open_popup: bool = False
    entity_id: Optional[str] = None


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notice:
    title: str
    description: str = ""
    level: NoticeLevel = NoticeLevel.INFO


@dataclass(slots=True)
class ViewportState:
    center: GeoPoint
    zoom: float
    bearing: float = 0.0
    cursor: str = ""
    width_px: float = 0.0
    height_px: float = 0.0
