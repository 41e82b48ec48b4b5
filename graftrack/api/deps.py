# path: graftrack-api/graftrack/api/deps.py

from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from graftrack.services.entity_store import EntityStore
from graftrack.services.object_storage import ObjectStorageService


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_objects(request: Request) -> ObjectStorageService:
    return request.app.state.objects


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    # Set by the identity provider's proxy; absent means demo/unowned data.
    return x_user_id or None
