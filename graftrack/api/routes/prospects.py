# path: graftrack-api/graftrack/api/routes/prospects.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from graftrack.api.deps import get_owner_id, get_store
from graftrack.errors import NotFound
from graftrack.models.entity_models import Prospect, ProspectCreate
from graftrack.services.entity_store import EntityStore

router = APIRouter(prefix="/api/prospects", tags=["prospects"])


@router.get("", response_model=List[Prospect])
async def list_prospects(
    owner_id: Optional[str] = Depends(get_owner_id),
    store: EntityStore = Depends(get_store),
) -> List[Prospect]:
    return await store.list_prospects(owner_id)


@router.post("", response_model=Prospect, status_code=201)
async def create_prospect(
    payload: ProspectCreate,
    owner_id: Optional[str] = Depends(get_owner_id),
    store: EntityStore = Depends(get_store),
) -> Prospect:
    return await store.create_prospect(owner_id, payload)


@router.delete("/{prospect_id}", status_code=204)
async def delete_prospect(prospect_id: str, store: EntityStore = Depends(get_store)) -> Response:
    try:
        await store.delete_prospect(prospect_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Prospect not found")
    return Response(status_code=204)
