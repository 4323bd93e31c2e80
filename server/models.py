"""SQLModel database models for FMC Comic."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class MappingType(str, Enum):
    SERIES = "series"
    CHAPTER = "chapter"


def new_uuid() -> str:
    return str(uuid.uuid4())


class MappingBase(SQLModel):
    slug: str = Field(index=True)
    type: str  # a MappingType value


class Mapping(MappingBase, table=True):
    __tablename__ = "mappings"
    # One row per (slug, type): concurrent lookup-or-create relies on this.
    __table_args__ = (UniqueConstraint("slug", "type", name="uq_mappings_slug_type"),)

    id: int | None = Field(default=None, primary_key=True)
    uuid: str = Field(unique=True, index=True, default_factory=new_uuid)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
