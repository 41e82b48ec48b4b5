# path: graftrack-api/graftrack/services/map_session.py

"""One map view: sensors, viewport, markers and the placement workflow wired
together, with the entity cache feeding the markers.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, List, Optional

from loguru import logger

from graftrack.config import Settings, settings as default_settings
from graftrack.errors import NetworkFailure, NotFound, ValidationError
from graftrack.models.entity_models import GeoPoint, Location, LocationUpdate, Prospect
from graftrack.models.map_models import Notice, NoticeLevel, PlacementMode, PlacementState
from graftrack.services.entity_client import EntityStoreClient
from graftrack.services.map_engine import InMemoryMapEngine, MapEngine
from graftrack.services.markers import MarkerRenderer
from graftrack.services.placement import PlacementWorkflow
from graftrack.services.query_cache import LOCATIONS, PROSPECTS, QueryCache
from graftrack.services.sensor_fusion import PlatformSensors, SensorFusionUnit
from graftrack.services.sharing import ShareLink, share_link
from graftrack.services.viewport import USER_ZOOM, MapViewportController


MAX_NOTICES = 20


class MapSession:
    def __init__(
        self,
        client: EntityStoreClient,
        engine: Optional[MapEngine] = None,
        platform: Optional[PlatformSensors] = None,
        config: Optional[Settings] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ) -> None:
        cfg = config or default_settings
        self._public_base_url = cfg.public_base_url
        self.client = client
        self.engine = engine or InMemoryMapEngine()
        self.notices: Deque[Notice] = deque(maxlen=MAX_NOTICES)
        self._on_notice = on_notice
        self.selected: Optional[Location] = None
        self.selected_prospect: Optional[Prospect] = None
        self._last_pending = None

        self.cache = QueryCache()
        self.cache.register(LOCATIONS, client.list_locations)
        self.cache.register(PROSPECTS, client.list_prospects)

        self.sensors = SensorFusionUnit(platform, on_notice=self.notify)
        self.viewport = MapViewportController(
            self.engine,
            center=GeoPoint(latitude=cfg.default_center_lat, longitude=cfg.default_center_lng),
            zoom=cfg.default_zoom,
            min_zoom=cfg.min_zoom,
            max_zoom=cfg.max_zoom,
        )
        self.markers = MarkerRenderer(
            self.engine,
            on_location_click=self._select_location,
            on_prospect_click=self._select_prospect,
        )
        self.workflow = PlacementWorkflow(
            client,
            on_change=self._on_workflow_change,
            on_saved=self._on_saved,
            on_notice=self.notify,
            heading_provider=lambda: self.sensors.bearing,
        )

        self.viewport.on_tap(self.workflow.handle_tap)
        self.viewport.on_bearing_change(self.markers.apply_bearing)
        self.sensors.add_listener(self._on_sensors)
        self.cache.subscribe(self._on_invalidated)

    # -- notices -----------------------------------------------------------

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    # -- lifecycle ---------------------------------------------------------

    def mount(self, container: Any) -> bool:
        if not self.viewport.mounted:
            fix = self.sensors.get_current_position()
            if fix is not None:
                self.viewport.set_view(fix.point)
        if not self.viewport.mount(container):
            return False
        self.engine.on_marker_click(self.markers.handle_marker_click)
        self.sensors.start()
        self.refresh()
        return True

    def unmount(self) -> None:
        self.sensors.stop()
        self.engine.on_marker_click(None)
        self.markers.clear()
        self.viewport.unmount()

    # -- data --------------------------------------------------------------

    def _fetch(self, key: str) -> List[Any]:
        try:
            return self.cache.get(key)
        except NetworkFailure as e:
            logger.warning(f"Error fetching {key}: {e}")
            self.notify(Notice("Error", f"Failed to load {key}", NoticeLevel.ERROR))
            return []

    def refresh(self) -> None:
        self._fetch(LOCATIONS)
        self._fetch(PROSPECTS)
        self.render()

    @property
    def locations(self) -> List[Location]:
        return self.cache.peek(LOCATIONS, [])

    @property
    def prospects(self) -> List[Prospect]:
        return self.cache.peek(PROSPECTS, [])

    def render(self) -> None:
        if not self.viewport.mounted:
            return
        fix = self.sensors.position
        self.markers.render(
            self.locations,
            self.prospects,
            self.workflow.pending,
            fix.point if fix is not None else None,
            heading=self.sensors.bearing,
            map_bearing=self.viewport.get_bearing(),
        )

    # -- callbacks ---------------------------------------------------------

    def _on_sensors(self, _unit: SensorFusionUnit) -> None:
        self.render()

    def _on_invalidated(self, key: str) -> None:
        self._fetch(key)
        self.render()

    def _on_workflow_change(self, wf: PlacementWorkflow) -> None:
        self.viewport.set_armed(wf.state == PlacementState.ARMED)
        if wf.pending is not None and wf.pending is not self._last_pending:
            self.viewport.set_view(wf.pending.position, USER_ZOOM)
        self._last_pending = wf.pending
        self.render()

    def _on_saved(self, mode: PlacementMode, _entity) -> None:
        self.cache.invalidate(PROSPECTS if mode == PlacementMode.PROSPECT else LOCATIONS)

    def _select_location(self, location: Location) -> None:
        self.selected = location

    def _select_prospect(self, prospect: Prospect) -> None:
        self.selected_prospect = prospect

    # -- user actions ------------------------------------------------------

    def center_on_user(self) -> bool:
        fix = self.sensors.position
        return self.viewport.center_on_user(fix.point if fix is not None else None)

    def share(self, location: Location) -> ShareLink:
        return share_link(location, self._public_base_url)

    def update_location(self, location_id: str, patch: LocationUpdate) -> Optional[Location]:
        try:
            updated = self.client.update_location(location_id, patch)
        except NotFound:
            self.notify(Notice("Already removed", "This location no longer exists"))
            self.cache.invalidate(LOCATIONS)
            return None
        except ValidationError as e:
            self.notify(Notice("Invalid data", e.notice, NoticeLevel.ERROR))
            return None
        except NetworkFailure:
            self.notify(Notice("Error", "Failed to update location. Please try again.", NoticeLevel.ERROR))
            return None
        self.cache.invalidate(LOCATIONS)
        return updated

    def delete_location(self, location_id: str) -> bool:
        return self._delete(location_id, self.client.delete_location, LOCATIONS, "location")

    def delete_prospect(self, prospect_id: str) -> bool:
        return self._delete(prospect_id, self.client.delete_prospect, PROSPECTS, "prospect")

    def _delete(self, entity_id: str, call: Callable[[str], None], key: str, what: str) -> bool:
        try:
            call(entity_id)
        except NotFound:
            logger.info(f"{what} {entity_id} already gone")
            self.notify(Notice("Already removed", f"This {what} was already removed"))
            self.cache.invalidate(key)
            return False
        except NetworkFailure:
            self.notify(Notice("Error", f"Failed to delete {what}. Please try again.", NoticeLevel.ERROR))
            return False
        if self.selected is not None and self.selected.id == entity_id:
            self.selected = None
        if self.selected_prospect is not None and self.selected_prospect.id == entity_id:
            self.selected_prospect = None
        self.notify(Notice("Deleted", f"The {what} was removed", NoticeLevel.SUCCESS))
        self.cache.invalidate(key)
        return True
