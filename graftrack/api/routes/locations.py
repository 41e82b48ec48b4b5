# path: graftrack-api/graftrack/api/routes/locations.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from graftrack.api.deps import get_owner_id, get_store
from graftrack.errors import NotFound
from graftrack.models.entity_models import Location, LocationCreate, LocationUpdate
from graftrack.services.entity_store import EntityStore

router = APIRouter(prefix="/api/locations", tags=["locations"])


@router.get("", response_model=List[Location])
async def list_locations(
    owner_id: Optional[str] = Depends(get_owner_id),
    store: EntityStore = Depends(get_store),
) -> List[Location]:
    return await store.list_locations(owner_id)


@router.get("/{location_id}", response_model=Location)
async def get_location(location_id: str, store: EntityStore = Depends(get_store)) -> Location:
    # Public: shared links resolve without an owner.
    try:
        return await store.get_location(location_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Location not found")


@router.post("", response_model=Location, status_code=201)
async def create_location(
    payload: LocationCreate,
    owner_id: Optional[str] = Depends(get_owner_id),
    store: EntityStore = Depends(get_store),
) -> Location:
    return await store.create_location(owner_id, payload)


@router.put("/{location_id}", response_model=Location)
async def update_location(
    location_id: str,
    patch: LocationUpdate,
    store: EntityStore = Depends(get_store),
) -> Location:
    try:
        return await store.update_location(location_id, patch)
    except NotFound:
        raise HTTPException(status_code=404, detail="Location not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{location_id}", status_code=204)
async def delete_location(location_id: str, store: EntityStore = Depends(get_store)) -> Response:
    try:
        await store.delete_location(location_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Location not found")
    return Response(status_code=204)
