# path: graftrack-api/graftrack/services/markers.py

"""Marker rendering: entity collections in, on-map markers out.

Each render replaces the whole marker set. The handles of what is on the
map are owned by the renderer instance, so two map views never share them.
"""

from __future__ import annotations

from html import escape
from typing import Callable, Dict, List, Optional, Sequence, Union

from loguru import logger

from graftrack.models.entity_models import GeoPoint, Location, LocationType, Prospect
from graftrack.models.map_models import (
    Glyph,
    MarkerKind,
    MarkerSpec,
    PendingPlacement,
    PlacementMode,
)
from graftrack.services.map_engine import MapEngine, MarkerHandle
from graftrack.utils.geo import format_latlng, normalize_bearing


USER_Z_OFFSET = 1000

LOCATION_GLYPHS: Dict[LocationType, Glyph] = {
    LocationType.TAG: Glyph("tag", "#2563eb"),
    LocationType.THROW: Glyph("throw", "#7c3aed"),
    LocationType.BURNER: Glyph("burner", "#ea580c"),
    LocationType.ROLLER: Glyph("roller", "#0891b2"),
}
PROSPECT_GLYPH = Glyph("x", "#dc2626", size_px=(28, 28), anchor_px=(14, 14))
PENDING_GLYPH = Glyph("pin", "#16a34a")
USER_GLYPH_NAME = "arrow"
USER_GLYPH_COLOR = "#2563eb"

PENDING_POPUPS = {
    PlacementMode.LOCATION: "New graffiti spot - tap Save to confirm",
    PlacementMode.PROSPECT: "New prospect - tap Save to confirm",
}

Entity = Union[Location, Prospect]


def _line(text: str, style: str) -> str:
    return f'<p style="{style}">{escape(text)}</p>'


def location_popup_html(location: Location, precise: bool = False) -> str:
    digits = 6 if precise else 4
    parts = [
        _line(location.title or "Graffiti Spot", "font-weight: 600; margin: 0 0 4px 0;"),
        _line(location.type.value, "margin: 0 0 4px 0; font-size: 12px;"),
    ]
    if location.city:
        parts.append(_line(location.city, "margin: 0 0 4px 0; font-size: 12px; color: #666;"))
    if location.address:
        parts.append(_line(location.address, "margin: 0 0 4px 0; font-size: 12px; color: #666;"))
    if location.description:
        parts.append(_line(location.description, "margin: 0 0 4px 0; font-size: 12px;"))
    parts.append(
        _line(
            format_latlng(location.latitude, location.longitude, digits),
            "margin: 0; font-size: 11px; color: #888;",
        )
    )
    heading = location.primary_heading
    if heading is not None:
        parts.append(_line(f"Heading {heading:.0f}°", "margin: 0; font-size: 11px; color: #888;"))
    if location.photos:
        imgs = "".join(
            f'<img src="{escape(url, quote=True)}" style="width: 48px; height: 48px; object-fit: cover;"/>'
            for url in location.photos
        )
        parts.append(f'<div class="photos" style="display: flex; gap: 4px;">{imgs}</div>')
    return f'<div style="min-width: 150px;">{"".join(parts)}</div>'


def prospect_popup_html(prospect: Prospect, precise: bool = False) -> str:
    digits = 6 if precise else 4
    parts = [_line("Prospect", "font-weight: 600; margin: 0 0 4px 0;")]
    if prospect.city:
        parts.append(_line(prospect.city, "margin: 0 0 4px 0; font-size: 12px; color: #666;"))
    if prospect.address:
        parts.append(_line(prospect.address, "margin: 0 0 4px 0; font-size: 12px; color: #666;"))
    if prospect.notes:
        parts.append(_line(prospect.notes, "margin: 0 0 4px 0; font-size: 12px;"))
    parts.append(
        _line(
            format_latlng(prospect.latitude, prospect.longitude, digits),
            "margin: 0; font-size: 11px; color: #888;",
        )
    )
    return f'<div style="min-width: 150px;">{"".join(parts)}</div>'


def user_glyph(heading: float) -> Glyph:
    return Glyph(
        USER_GLYPH_NAME,
        USER_GLYPH_COLOR,
        rotation_deg=normalize_bearing(heading),
        size_px=(40, 40),
        anchor_px=(20, 20),
    )


class MarkerRenderer:
    def __init__(
        self,
        engine: MapEngine,
        on_location_click: Optional[Callable[[Location], None]] = None,
        on_prospect_click: Optional[Callable[[Prospect], None]] = None,
    ) -> None:
        self._engine = engine
        self._on_location_click = on_location_click
        self._on_prospect_click = on_prospect_click
        self._handles: Dict[str, MarkerHandle] = {}
        self._specs: Dict[str, MarkerSpec] = {}
        self._entities: Dict[str, Entity] = {}
        self._map_bearing = 0.0

    @property
    def keys(self) -> List[str]:
        return list(self._handles)

    def spec(self, key: str) -> Optional[MarkerSpec]:
        return self._specs.get(key)

    def build(
        self,
        locations: Sequence[Location],
        prospects: Sequence[Prospect],
        pending: Optional[PendingPlacement],
        user_position: Optional[GeoPoint],
        heading: float,
    ) -> List[MarkerSpec]:
        """Compute the marker set without touching the engine."""
        specs: List[MarkerSpec] = []
        for loc in locations:
            specs.append(
                MarkerSpec(
                    key=f"location:{loc.id}",
                    kind=MarkerKind.LOCATION,
                    position=loc.position,
                    glyph=LOCATION_GLYPHS[loc.type],
                    popup_html=location_popup_html(loc),
                    entity_id=loc.id,
                )
            )
        for p in prospects:
            specs.append(
                MarkerSpec(
                    key=f"prospect:{p.id}",
                    kind=MarkerKind.PROSPECT,
                    position=p.position,
                    glyph=PROSPECT_GLYPH,
                    popup_html=prospect_popup_html(p),
                    entity_id=p.id,
                )
            )
        if pending is not None:
            specs.append(
                MarkerSpec(
                    key="pending",
                    kind=MarkerKind.PENDING,
                    position=pending.position,
                    glyph=PENDING_GLYPH,
                    popup_html=escape(PENDING_POPUPS[pending.mode]),
                    open_popup=True,
                )
            )
        if user_position is not None:
            specs.append(
                MarkerSpec(
                    key="user",
                    kind=MarkerKind.USER,
                    position=user_position,
                    glyph=user_glyph(heading),
                    popup_html="Your Location",
                    z_index_offset=USER_Z_OFFSET,
                )
            )
        return specs

    def render(
        self,
        locations: Sequence[Location],
        prospects: Sequence[Prospect],
        pending: Optional[PendingPlacement],
        user_position: Optional[GeoPoint],
        heading: float = 0.0,
        map_bearing: Optional[float] = None,
    ) -> None:
        if map_bearing is not None:
            self._map_bearing = map_bearing
        self.clear()
        self._entities = {f"location:{loc.id}": loc for loc in locations}
        self._entities.update({f"prospect:{p.id}": p for p in prospects})
        for spec in self.build(locations, prospects, pending, user_position, heading):
            try:
                handle = self._engine.add_marker(spec)
            except Exception as e:
                logger.warning(f"Failed to draw marker {spec.key}: {e}")
                continue
            self._handles[spec.key] = handle
            self._specs[spec.key] = spec
        self.apply_bearing(self._map_bearing)

    def clear(self) -> None:
        for handle in self._handles.values():
            self._engine.remove_marker(handle)
        self._handles.clear()
        self._specs.clear()

    def apply_bearing(self, map_bearing: float) -> None:
        """Counter-rotate every marker and open popup so they stay upright."""
        self._map_bearing = map_bearing
        counter = -map_bearing
        for handle in self._handles.values():
            self._engine.set_marker_rotation(handle, counter)

    def handle_marker_click(self, handle: MarkerHandle) -> Optional[Entity]:
        for key, h in self._handles.items():
            if h == handle:
                return self.activate(key)
        return None

    def activate(self, key: str) -> Optional[Entity]:
        """Open a marker's popup and hand its entity to the details callback."""
        handle = self._handles.get(key)
        if handle is None:
            return None
        self._engine.open_popup(handle)
        self._engine.set_marker_rotation(handle, -self._map_bearing)
        entity = self._entities.get(key)
        if isinstance(entity, Location) and self._on_location_click is not None:
            self._on_location_click(entity)
        elif isinstance(entity, Prospect) and self._on_prospect_click is not None:
            self._on_prospect_click(entity)
        return entity
