"""Mapping service: hide source slugs behind opaque UUIDs.

Validation and error translation live here so the HTTP routes and the
CLI share one behaviour.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .errors import InternalError, NotFound, ValidationError
from .logging_config import get_logger
from .models import Mapping, MappingType
from .repository import MappingRepository

logger = get_logger(__name__)

MAPPING_TYPES = frozenset(t.value for t in MappingType)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def validate_pair(slug: Any, mapping_type: Any) -> tuple[str, str]:
    """Return (slug, type) stripped, or raise ValidationError."""
    slug = _clean(slug)
    mapping_type = _clean(mapping_type)
    if not slug or not mapping_type:
        raise ValidationError("slug and type are required")
    mapping_type = mapping_type.lower()
    if mapping_type not in MAPPING_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(sorted(MAPPING_TYPES))}"
        )
    return slug, mapping_type


def get_or_create_uuid(session: Session, slug: Any, mapping_type: Any) -> str:
    """Return the UUID for (slug, type), creating the mapping on first use."""
    slug, mapping_type = validate_pair(slug, mapping_type)
    logger.debug(f"Looking up mapping for {slug} ({mapping_type})")
    try:
        mapping = MappingRepository(session).get_or_create(slug, mapping_type)
    except SQLAlchemyError as exc:
        logger.error(f"Internal error @ get-id: {exc}")
        raise InternalError(str(exc)) from exc
    return mapping.uuid


def resolve_uuid(session: Session, mapping_uuid: str) -> Mapping:
    """Return the mapping behind a UUID, or raise NotFound."""
    try:
        mapping = MappingRepository(session).get_by_uuid(mapping_uuid.strip())
    except SQLAlchemyError as exc:
        logger.error(f"Internal error @ get-slug: {exc}")
        raise InternalError(str(exc)) from exc
    if mapping is None:
        raise NotFound(f"UUID {mapping_uuid} not found")
    return mapping
