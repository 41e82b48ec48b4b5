# path: graftrack-api/graftrack/services/placement.py

"""Placement workflow: add -> tap map -> fill form -> save or cancel.

    Idle --toggle_add--> Armed --tap--> Pending --submit ok--> Idle
      ^                    |              |
      +----toggle/cancel---+--------------+

At most one placement exists at a time. Re-invoking "add" while Armed or
Pending cancels rather than stacking.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from graftrack.errors import GrafTrackError, NetworkFailure, ValidationError
from graftrack.models.entity_models import (
    GeoPoint,
    Location,
    LocationCreate,
    LocationType,
    Prospect,
    ProspectCreate,
)
from graftrack.models.map_models import (
    Notice,
    NoticeLevel,
    PendingPlacement,
    PlacementMode,
    PlacementState,
)
from graftrack.services.photo_meta import extract_photo_heading


PREDEFINED_TAGS = ["Street Art", "Mural", "Tag", "Stencil", "Throw-up", "Piece"]


class EntityWriter(Protocol):
    def create_location(self, payload: LocationCreate) -> Location: ...

    def create_prospect(self, payload: ProspectCreate) -> Prospect: ...

    def upload_photo(self, data: bytes, content_type: str = "image/jpeg") -> str: ...


@dataclass
class LocationForm:
    position: GeoPoint
    title: str = ""
    type: LocationType = LocationType.TAG
    description: str = ""
    city: str = ""
    address: str = ""
    tags: List[str] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)
    photo_headings: List[float] = field(default_factory=list)
    client_token: str = field(default_factory=lambda: uuid.uuid4().hex)
    errors: Dict[str, str] = field(default_factory=dict)

    def toggle_tag(self, tag: str) -> None:
        if tag in self.tags:
            self.tags.remove(tag)
        else:
            self.tags.append(tag)

    def add_custom_tag(self, tag: str) -> bool:
        tag = tag.strip()
        if not tag or tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def add_photo(self, url: str, heading: float) -> None:
        self.photos.append(url)
        self.photo_headings.append(heading)

    def remove_photo(self, index: int) -> None:
        del self.photos[index]
        del self.photo_headings[index]

    def to_payload(self) -> LocationCreate:
        return LocationCreate(
            position=self.position,
            title=self.title,
            type=self.type,
            description=self.description or None,
            city=self.city or None,
            address=self.address or None,
            tags=list(self.tags),
            photos=list(self.photos),
            photo_headings=list(self.photo_headings) if self.photos else None,
            client_token=self.client_token,
        )


@dataclass
class ProspectForm:
    position: GeoPoint
    notes: str = ""
    city: str = ""
    address: str = ""
    client_token: str = field(default_factory=lambda: uuid.uuid4().hex)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> ProspectCreate:
        return ProspectCreate(
            position=self.position,
            notes=self.notes or None,
            city=self.city or None,
            address=self.address or None,
            client_token=self.client_token,
        )


Form = Union[LocationForm, ProspectForm]


def _field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for err in exc.errors():
        key = ".".join(str(p) for p in err["loc"]) or "__all__"
        out[key] = err["msg"]
    return out


class PlacementWorkflow:
    def __init__(
        self,
        store: EntityWriter,
        on_change: Optional[Callable[["PlacementWorkflow"], None]] = None,
        on_saved: Optional[Callable[[PlacementMode, Union[Location, Prospect]], None]] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
        heading_provider: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._on_change = on_change
        self._on_saved = on_saved
        self._on_notice = on_notice
        self._heading_provider = heading_provider or (lambda: 0.0)

        self.state = PlacementState.IDLE
        self.mode = PlacementMode.LOCATION
        self.pending: Optional[PendingPlacement] = None
        self.form: Optional[Form] = None
        self.submitting = False

    @property
    def armed(self) -> bool:
        return self.state == PlacementState.ARMED

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _notice(self, title: str, description: str = "", level: NoticeLevel = NoticeLevel.INFO) -> None:
        if self._on_notice is not None:
            self._on_notice(Notice(title, description, level))

    def _reset(self) -> None:
        self.state = PlacementState.IDLE
        self.pending = None
        self.form = None
        self.submitting = False

    # -- transitions -------------------------------------------------------

    def toggle_add(self, mode: PlacementMode = PlacementMode.LOCATION) -> PlacementState:
        if self.state != PlacementState.IDLE:
            self.cancel()
            self._notice("Cancelled", "Location adding cancelled")
            return self.state
        self.state = PlacementState.ARMED
        self.mode = mode
        logger.info(f"Placement armed ({mode.value})")
        if mode == PlacementMode.PROSPECT:
            self._notice("Add Prospect", "Tap on the map to mark a prospect")
        else:
            self._notice("Add Location", "Tap on the map to add a graffiti location")
        self._notify()
        return self.state

    def select_mode(self, mode: PlacementMode) -> bool:
        """Switch Location/Prospect. Only honoured before the map tap."""
        if self.state != PlacementState.ARMED:
            return False
        self.mode = mode
        self._notify()
        return True

    def handle_tap(self, point: GeoPoint) -> bool:
        if self.state != PlacementState.ARMED:
            return False
        self.pending = PendingPlacement(position=point, mode=self.mode)
        if self.mode == PlacementMode.PROSPECT:
            self.form = ProspectForm(position=point)
        else:
            self.form = LocationForm(position=point)
        self.state = PlacementState.PENDING
        logger.info(
            f"Pending {self.mode.value} at {point.latitude:.6f}, {point.longitude:.6f}"
        )
        self._notify()
        return True

    def cancel(self) -> None:
        """Always available; discards any placement without a network call."""
        if self.state == PlacementState.IDLE:
            return
        logger.info(f"Placement cancelled from {self.state.value}")
        self._reset()
        self._notify()

    # -- photos ------------------------------------------------------------

    def attach_photo(self, data: bytes, content_type: str = "image/jpeg") -> bool:
        form = self.form
        if self.state != PlacementState.PENDING or not isinstance(form, LocationForm):
            return False
        heading = extract_photo_heading(data)
        if heading is None:
            heading = self._heading_provider()
        try:
            url = self._store.upload_photo(data, content_type)
        except GrafTrackError as e:
            logger.warning(f"Photo upload failed: {e}")
            self._notice("Upload Error", "Upload failed, retry", NoticeLevel.ERROR)
            return False
        form.add_photo(url, heading)
        self._notice("Success", "1 photo(s) uploaded successfully", NoticeLevel.SUCCESS)
        self._notify()
        return True

    # -- submit ------------------------------------------------------------

    def submit(self) -> Optional[Union[Location, Prospect]]:
        """Validate and save. Failures leave the workflow in Pending."""
        if self.state != PlacementState.PENDING or self.form is None:
            return None
        if self.submitting:
            return None
        form = self.form
        form.errors = {}

        try:
            payload = form.to_payload()
        except PydanticValidationError as e:
            form.errors = _field_errors(e)
            if "title" in form.errors:
                self._notice("Title Required", "Please enter a title for this location", NoticeLevel.ERROR)
            else:
                self._notice("Invalid data", "Please check the highlighted fields", NoticeLevel.ERROR)
            self._notify()
            return None

        self.submitting = True
        try:
            if isinstance(payload, LocationCreate):
                entity = self._store.create_location(payload)
            else:
                entity = self._store.create_prospect(payload)
        except ValidationError as e:
            form.errors = dict(e.field_errors)
            self._notice("Invalid data", e.notice, NoticeLevel.ERROR)
            self._notify()
            return None
        except NetworkFailure as e:
            logger.warning(f"Error creating {self.mode.value}: {e}")
            what = "prospect" if self.mode == PlacementMode.PROSPECT else "location"
            self._notice("Error", f"Failed to save {what}. Please try again.", NoticeLevel.ERROR)
            self._notify()
            return None
        except GrafTrackError as e:
            logger.warning(f"Error creating {self.mode.value}: {e}")
            self._notice("Error", e.notice, NoticeLevel.ERROR)
            self._notify()
            return None
        finally:
            # Unexpected errors propagate, but the form stays submittable.
            self.submitting = False

        mode = self.mode
        logger.info(f"Saved {mode.value} {entity.id}")
        self._reset()
        self._notify()
        if mode == PlacementMode.PROSPECT:
            self._notice("Success", "Prospect saved successfully!", NoticeLevel.SUCCESS)
        else:
            self._notice("Success", "Location saved successfully!", NoticeLevel.SUCCESS)
        if self._on_saved is not None:
            self._on_saved(mode, entity)
        return entity
