# path: graftrack-api/graftrack/models/db_models.py

"""SQLAlchemy models for the entity store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from graftrack.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationRow(Base):
    """Confirmed graffiti spot."""

    __tablename__ = "graffiti_locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    title: Mapped[str] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(16), default="Tag")
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    photos: Mapped[List[str]] = mapped_column(JSON, default=list)
    photo_headings: Mapped[Optional[List[float]]] = mapped_column(JSON, nullable=True)
    client_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


class ProspectRow(Base):
    """Unconfirmed lead; kept apart from locations."""

    __tablename__ = "prospects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
