# backend/courtbook/repositories/resource_repository.py
"""
Resource Repository for Courtbook

Lookups for resources, their establishment, alternative resources for the
recurring planner and the opening window that applies on a given weekday.
"""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.config import settings
from ..core.exceptions import RepositoryException
from ..models.establishment import Establishment, OpeningHours, OpeningWindow, default_window
from ..models.resource import Resource
from ..utils.time_helpers import string_to_time
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ResourceRepository(BaseRepository[Resource]):
    def __init__(self, db: Session):
        super().__init__(db, Resource)

    def get_with_establishment(self, resource_id: str) -> Optional[Resource]:
        try:
            return cast(
                Optional[Resource],
                self.db.query(Resource)
                .options(joinedload(Resource.establishment))
                .filter(Resource.id == resource_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading resource {resource_id}: {str(e)}")
            raise RepositoryException(f"Failed to load resource: {str(e)}")

    def get_establishment(self, establishment_id: str) -> Optional[Establishment]:
        try:
            return cast(
                Optional[Establishment],
                self.db.query(Establishment).filter(Establishment.id == establishment_id).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading establishment {establishment_id}: {str(e)}")
            raise RepositoryException(f"Failed to load establishment: {str(e)}")

    def get_alternatives(self, resource: Resource, sport: Optional[str] = None) -> List[Resource]:
        """
        Active resources of the same sport at the same establishment, excluding ``resource``.

        Ordered by name so auto-selection is deterministic.
        """
        target_sport = sport or resource.sport
        query = self._build_query().filter(
            Resource.establishment_id == resource.establishment_id,
            Resource.id != resource.id,
            Resource.is_active.is_(True),
            Resource.kind == resource.kind,
        )
        if target_sport:
            query = query.filter(Resource.sport == target_sport)
        return self._execute_query(query.order_by(Resource.name, Resource.id))

    def get_opening_window(self, resource: Resource, weekday: int) -> OpeningWindow:
        """
        Opening window for ``resource`` on ``weekday`` (0 = Monday).

        A resource-specific row wins over the establishment row; without either
        the configured default hours apply.
        """
        try:
            rows = (
                self.db.query(OpeningHours)
                .filter(
                    OpeningHours.establishment_id == resource.establishment_id,
                    OpeningHours.weekday == weekday,
                    (OpeningHours.resource_id == resource.id)
                    | (OpeningHours.resource_id.is_(None)),
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading opening hours: {str(e)}")
            raise RepositoryException(f"Failed to load opening hours: {str(e)}")

        specific = next((r for r in rows if r.resource_id == resource.id), None)
        general = next((r for r in rows if r.resource_id is None), None)
        row = specific or general
        if row is not None:
            return row.to_window()

        return default_window(
            weekday,
            string_to_time(settings.default_open_time),
            string_to_time(settings.default_close_time),
        )
