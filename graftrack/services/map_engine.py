# path: graftrack-api/graftrack/services/map_engine.py

"""Map engine boundary.

The viewport controller and the marker renderer only talk to a map engine
through this interface, so a tile renderer can be swapped without touching
the placement workflow or the sensor unit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from graftrack.models.entity_models import GeoPoint
from graftrack.models.map_models import MarkerSpec


ClickHandler = Callable[[GeoPoint], None]
MarkerHandle = int
MarkerClickHandler = Callable[[MarkerHandle], None]


class MapEngine(ABC):
    @abstractmethod
    def mount(self, container: Any) -> bool:
        """Attach to a container. Returns False when there is nothing to mount on."""

    @abstractmethod
    def unmount(self) -> None: ...

    @abstractmethod
    def set_view(self, center: GeoPoint, zoom: float) -> None: ...

    @abstractmethod
    def on_click(self, handler: Optional[ClickHandler]) -> None: ...

    @abstractmethod
    def add_marker(self, spec: MarkerSpec) -> MarkerHandle: ...

    @abstractmethod
    def remove_marker(self, handle: MarkerHandle) -> None: ...

    @abstractmethod
    def apply_viewport_transform(self, bearing: float, animate: bool = False) -> None:
        """Rotate the rendered layer by ``bearing`` degrees (visual only)."""

    @abstractmethod
    def set_marker_rotation(self, handle: MarkerHandle, deg: float) -> None:
        """Rotate one marker element and its popup, if open."""

    def on_marker_click(self, handler: Optional[MarkerClickHandler]) -> None:
        """Report which marker the user activated. Engines without hit-testing ignore this."""

    def set_cursor(self, cursor: str) -> None:
        pass

    def open_popup(self, handle: MarkerHandle) -> None:
        pass


class InMemoryMapEngine(MapEngine):
    """Headless engine that records what would be on screen."""

    def __init__(self) -> None:
        self.container: Any = None
        self.mounted = False
        self.center: Optional[GeoPoint] = None
        self.zoom: Optional[float] = None
        self.layer_rotation = 0.0
        self.last_transition_animated = False
        self.cursor = ""
        self.markers: Dict[MarkerHandle, MarkerSpec] = {}
        self.marker_rotation: Dict[MarkerHandle, float] = {}
        self.open_popups: set[MarkerHandle] = set()
        self.popup_rotation: Dict[MarkerHandle, float] = {}
        self.transforms_applied: List[float] = []
        self._click_handler: Optional[ClickHandler] = None
        self._marker_click_handler: Optional[MarkerClickHandler] = None
        self._ids = count(1)

    def mount(self, container: Any) -> bool:
        if container is None:
            return False
        self.container = container
        self.mounted = True
        logger.debug("Map engine mounted")
        return True

    def unmount(self) -> None:
        self.markers.clear()
        self.marker_rotation.clear()
        self.open_popups.clear()
        self.popup_rotation.clear()
        self._click_handler = None
        self._marker_click_handler = None
        self.container = None
        self.mounted = False

    def set_view(self, center: GeoPoint, zoom: float) -> None:
        self.center = center
        self.zoom = zoom

    def on_click(self, handler: Optional[ClickHandler]) -> None:
        self._click_handler = handler

    def click(self, point: GeoPoint) -> None:
        """Simulate the engine reporting a click at ``point``."""
        if self._click_handler is not None:
            self._click_handler(point)

    def on_marker_click(self, handler: Optional[MarkerClickHandler]) -> None:
        self._marker_click_handler = handler

    def click_marker(self, handle: MarkerHandle) -> None:
        """Simulate the user tapping the marker behind ``handle``."""
        if handle in self.markers and self._marker_click_handler is not None:
            self._marker_click_handler(handle)

    def add_marker(self, spec: MarkerSpec) -> MarkerHandle:
        handle = next(self._ids)
        self.markers[handle] = spec
        self.marker_rotation[handle] = 0.0
        if spec.open_popup:
            self.open_popup(handle)
        return handle

    def remove_marker(self, handle: MarkerHandle) -> None:
        self.markers.pop(handle, None)
        self.marker_rotation.pop(handle, None)
        self.open_popups.discard(handle)
        self.popup_rotation.pop(handle, None)

    def apply_viewport_transform(self, bearing: float, animate: bool = False) -> None:
        self.layer_rotation = bearing
        self.last_transition_animated = animate
        self.transforms_applied.append(bearing)

    def set_marker_rotation(self, handle: MarkerHandle, deg: float) -> None:
        if handle not in self.markers:
            return
        self.marker_rotation[handle] = deg
        if handle in self.open_popups:
            self.popup_rotation[handle] = deg

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    def open_popup(self, handle: MarkerHandle) -> None:
        if handle in self.markers:
            self.open_popups.add(handle)
            self.popup_rotation[handle] = self.marker_rotation.get(handle, 0.0)

    # Convenience views for callers and tests.
    def markers_of_kind(self, kind) -> List[MarkerSpec]:
        return [m for m in self.markers.values() if m.kind == kind]
