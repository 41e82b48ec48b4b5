# path: graftrack-api/graftrack/services/entity_store.py

"""Entity store: plain CRUD for locations and prospects."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from graftrack.errors import NotFound
from graftrack.models.db_models import LocationRow, ProspectRow
from graftrack.models.entity_models import (
    Location,
    LocationCreate,
    LocationType,
    LocationUpdate,
    Prospect,
    ProspectCreate,
    merge_location_update,
)
from graftrack.services.object_storage import ObjectStorageService


def _aware(dt: datetime) -> datetime:
    # SQLite hands timestamps back naive; they were written as UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _owner_clause(column, owner_id: Optional[str]):
    return column.is_(None) if owner_id is None else column == owner_id


def location_from_row(row: LocationRow) -> Location:
    return Location(
        id=row.id,
        owner_id=row.owner_id,
        latitude=row.latitude,
        longitude=row.longitude,
        title=row.title,
        type=row.type,
        city=row.city,
        address=row.address,
        description=row.description,
        tags=list(row.tags or []),
        photos=list(row.photos or []),
        photo_headings=list(row.photo_headings) if row.photo_headings is not None else None,
        created_at=_aware(row.created_at),
    )


def prospect_from_row(row: ProspectRow) -> Prospect:
    return Prospect(
        id=row.id,
        owner_id=row.owner_id,
        latitude=row.latitude,
        longitude=row.longitude,
        notes=row.notes,
        city=row.city,
        address=row.address,
        created_at=_aware(row.created_at),
    )


class EntityStore:
    def __init__(self, session_factory: async_sessionmaker, objects: ObjectStorageService) -> None:
        self._sessions = session_factory
        self._objects = objects

    # -- locations ---------------------------------------------------------

    async def list_locations(self, owner_id: Optional[str]) -> List[Location]:
        async with self._sessions() as db:
            result = await db.execute(
                select(LocationRow)
                .where(_owner_clause(LocationRow.owner_id, owner_id))
                .order_by(LocationRow.created_at.desc())
            )
            return [location_from_row(r) for r in result.scalars()]

    async def get_location(self, location_id: str) -> Location:
        async with self._sessions() as db:
            row = await db.get(LocationRow, location_id)
            if row is None:
                raise NotFound(f"location {location_id} not found")
            return location_from_row(row)

    async def create_location(self, owner_id: Optional[str], payload: LocationCreate) -> Location:
        async with self._sessions() as db:
            if payload.client_token:
                existing = await db.scalar(
                    select(LocationRow).where(
                        _owner_clause(LocationRow.owner_id, owner_id),
                        LocationRow.client_token == payload.client_token,
                    )
                )
                if existing is not None:
                    logger.info(f"Repeated create for token {payload.client_token}; returning {existing.id}")
                    return location_from_row(existing)

            row = LocationRow(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                latitude=payload.latitude,
                longitude=payload.longitude,
                title=payload.title,
                type=payload.type.value,
                city=payload.city,
                address=payload.address,
                description=payload.description,
                tags=list(payload.tags),
                photos=[self._objects.normalize_object_path(p) for p in payload.photos],
                photo_headings=list(payload.photo_headings) if payload.photo_headings is not None else None,
                client_token=payload.client_token,
                created_at=datetime.now(timezone.utc),
            )
            db.add(row)
            await db.commit()
            logger.info(f"Created location {row.id} at {row.latitude:.6f}, {row.longitude:.6f}")
            return location_from_row(row)

    async def update_location(self, location_id: str, patch: LocationUpdate) -> Location:
        async with self._sessions() as db:
            row = await db.get(LocationRow, location_id)
            if row is None:
                raise NotFound(f"location {location_id} not found")
            merged = merge_location_update(location_from_row(row), patch)
            if "photos" in patch.model_fields_set and merged.get("photos") is not None:
                merged["photos"] = [self._objects.normalize_object_path(p) for p in merged["photos"]]
            for key in (
                "latitude",
                "longitude",
                "title",
                "city",
                "address",
                "description",
                "tags",
                "photos",
                "photo_headings",
            ):
                setattr(row, key, merged.get(key))
            row.type = LocationType(merged["type"]).value
            await db.commit()
            logger.info(f"Updated location {location_id}")
            return location_from_row(row)

    async def delete_location(self, location_id: str) -> None:
        async with self._sessions() as db:
            row = await db.get(LocationRow, location_id)
            if row is None:
                raise NotFound(f"location {location_id} not found")
            await db.delete(row)
            await db.commit()
            logger.info(f"Deleted location {location_id}")

    # -- prospects ---------------------------------------------------------

    async def list_prospects(self, owner_id: Optional[str]) -> List[Prospect]:
        async with self._sessions() as db:
            result = await db.execute(
                select(ProspectRow)
                .where(_owner_clause(ProspectRow.owner_id, owner_id))
                .order_by(ProspectRow.created_at.desc())
            )
            return [prospect_from_row(r) for r in result.scalars()]

    async def create_prospect(self, owner_id: Optional[str], payload: ProspectCreate) -> Prospect:
        async with self._sessions() as db:
            if payload.client_token:
                existing = await db.scalar(
                    select(ProspectRow).where(
                        _owner_clause(ProspectRow.owner_id, owner_id),
                        ProspectRow.client_token == payload.client_token,
                    )
                )
                if existing is not None:
                    return prospect_from_row(existing)

            row = ProspectRow(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                latitude=payload.latitude,
                longitude=payload.longitude,
                notes=payload.notes,
                city=payload.city,
                address=payload.address,
                client_token=payload.client_token,
                created_at=datetime.now(timezone.utc),
            )
            db.add(row)
            await db.commit()
            logger.info(f"Created prospect {row.id} at {row.latitude:.6f}, {row.longitude:.6f}")
            return prospect_from_row(row)

    async def delete_prospect(self, prospect_id: str) -> None:
        async with self._sessions() as db:
            row = await db.get(ProspectRow, prospect_id)
            if row is None:
                raise NotFound(f"prospect {prospect_id} not found")
            await db.delete(row)
            await db.commit()
            logger.info(f"Deleted prospect {prospect_id}")
