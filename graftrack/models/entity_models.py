# path: graftrack-api/graftrack/models/entity_models.py

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class LocationType(str, Enum):
    TAG = "Tag"
    THROW = "Throw"
    BURNER = "Burner"
    ROLLER = "Roller"


def _clean_optional(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _check_headings(photos: List[str], headings: Optional[List[float]]) -> None:
    if headings is None:
        return
    if len(headings) != len(photos):
        raise ValueError(
            f"photo_headings length {len(headings)} must equal photos length {len(photos)}"
        )
    for h in headings:
        if not (0.0 <= h < 360.0):
            raise ValueError(f"photo heading out of range [0,360): {h}")


def _dedupe_tags(tags: List[str]) -> List[str]:
    out: List[str] = []
    for t in tags:
        t = t.strip()
        if t and t not in out:
            out.append(t)
    return out


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Positioned(BaseModel):
    """Entities travel with flattened latitude/longitude, as stored."""

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="before")
    @classmethod
    def unpack_position(cls, data: Any):
        if isinstance(data, dict) and "position" in data:
            data = dict(data)
            pos = data.pop("position")
            if isinstance(pos, GeoPoint):
                pos = pos.model_dump()
            data.setdefault("latitude", pos["latitude"])
            data.setdefault("longitude", pos["longitude"])
        return data

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------

class LocationCreate(_Positioned):
    title: str = Field(min_length=1, max_length=120)
    type: LocationType = LocationType.TAG
    city: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    photo_headings: Optional[List[float]] = None
    # Client-generated; a repeated token returns the record already created.
    client_token: Optional[str] = Field(default=None, max_length=64)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @field_validator("city", "address", "description")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_optional(v)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, tags: List[str]) -> List[str]:
        return _dedupe_tags(tags)

    @model_validator(mode="after")
    def validate_headings(self):
        _check_headings(self.photos, self.photo_headings)
        return self


class LocationUpdate(BaseModel):
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    title: Optional[str] = Field(default=None, max_length=120)
    type: Optional[LocationType] = None
    city: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    photos: Optional[List[str]] = None
    photo_headings: Optional[List[float]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        return None if tags is None else _dedupe_tags(tags)


class Location(_Positioned):
    id: str
    owner_id: Optional[str] = None
    title: str
    type: LocationType = LocationType.TAG
    city: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    photo_headings: Optional[List[float]] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def validate_headings(self):
        _check_headings(self.photos, self.photo_headings)
        return self

    @property
    def primary_heading(self) -> Optional[float]:
        if self.photo_headings:
            return self.photo_headings[0]
        return None


_REQUIRED_FIELDS = ("latitude", "longitude", "title", "type", "tags", "photos")


def merge_location_update(current: Location, patch: LocationUpdate) -> Dict[str, Any]:
    """Apply a partial update and re-check invariants on the merged record."""
    changes = patch.model_dump(exclude_unset=True)
    for key in _REQUIRED_FIELDS:
        if changes.get(key, 0) is None:
            changes.pop(key)
    merged = current.model_dump()
    merged.update(changes)
    for key in ("city", "address", "description"):
        merged[key] = _clean_optional(merged.get(key))
    if "photos" in changes and "photo_headings" not in changes and merged.get("photo_headings") is not None:
        # Photos replaced without headings: the old parallel array no longer lines up.
        merged["photo_headings"] = None
    _check_headings(merged.get("photos") or [], merged.get("photo_headings"))
    return merged


# ---------------------------------------------------------------------------
# Prospects
# ---------------------------------------------------------------------------

class ProspectCreate(_Positioned):
    notes: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    client_token: Optional[str] = Field(default=None, max_length=64)

    @field_validator("notes", "city", "address")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_optional(v)


class Prospect(_Positioned):
    id: str
    owner_id: Optional[str] = None
    notes: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class UploadURLResponse(BaseModel):
    upload_url: str
