"""Data Access Layer for FMC Comic.

Encapsulates mapping queries using SQLModel/SQLAlchemy.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from .logging_config import get_logger
from .models import Mapping

logger = get_logger(__name__)


class MappingRepository:
    """Data access for slug <-> UUID mappings.

    Callers own the session; write methods commit because a mapping
    insert is its own unit of work.
    """

    def __init__(self, session: Session):
        self.session = session

    def find(self, slug: str, mapping_type: str) -> Optional[Mapping]:
        statement = select(Mapping).where(
            Mapping.slug == slug, Mapping.type == mapping_type
        )
        return self.session.exec(statement).first()

    def get_or_create(self, slug: str, mapping_type: str) -> Mapping:
        """Return the mapping for (slug, type), inserting a fresh UUID if absent.

        Two requests racing on the same pair both reach the insert; the
        unique (slug, type) constraint rejects the loser, which rolls back
        and returns the winner's row.
        """
        mapping = self.find(slug, mapping_type)
        if mapping:
            return mapping

        logger.info(f"No mapping for {slug} ({mapping_type}), creating UUID")
        mapping = Mapping(slug=slug, type=mapping_type)
        self.session.add(mapping)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing = self.find(slug, mapping_type)
            if existing is None:
                raise
            logger.debug(f"Lost insert race for {slug} ({mapping_type})")
            return existing

        self.session.refresh(mapping)
        return mapping

    def get_by_uuid(self, mapping_uuid: str) -> Optional[Mapping]:
        return self.session.exec(
            select(Mapping).where(Mapping.uuid == mapping_uuid)
        ).first()

    def count(self, mapping_type: Optional[str] = None) -> int:
        statement = select(func.count()).select_from(Mapping)
        if mapping_type is not None:
            statement = statement.where(Mapping.type == mapping_type)
        return self.session.exec(statement).one()

    def list_recent(self, limit: int = 20) -> List[Mapping]:
        statement = select(Mapping).order_by(Mapping.created_at.desc(), Mapping.id.desc()).limit(limit)
        return list(self.session.exec(statement).all())
