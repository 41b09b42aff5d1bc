"""Read-only access to an organization's existing shows and venues."""

from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from show_import.core.database import async_session_maker
from show_import.database.models import Show, Venue
from show_import.repositories.base_repository import BaseRepository
from show_import.services.duplicates.duplicate_matcher import ShowRecord, VenueRecord


class OrganizationRecordRepository(BaseRepository[Show]):
    """Loads comparison records for the duplicate matcher. Never writes."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Show)

    async def list_shows(self, org_id: str) -> List[ShowRecord]:
        """Shows of one organization, with their venue name when linked."""
        try:
            query = (
                select(Show, Venue.name)
                .outerjoin(Venue, Venue.id == Show.venue_id)
                .where(Show.org_id == org_id)
                .order_by(Show.id)
            )
            result = await self.session.execute(query)
            return [
                ShowRecord(
                    id=str(show.id),
                    title=show.title,
                    date=show.date.isoformat() if show.date else None,
                    city=show.city,
                    venue_name=venue_name,
                )
                for show, venue_name in result.all()
            ]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing shows for org {org_id}: {str(e)}", exc_info=True)
            raise

    async def list_venues(self, org_id: str) -> List[VenueRecord]:
        """Venues of one organization."""
        try:
            query = select(Venue).where(Venue.org_id == org_id).order_by(Venue.id)
            result = await self.session.execute(query)
            return [
                VenueRecord(id=str(venue.id), name=venue.name, city=venue.city)
                for venue in result.scalars().all()
            ]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing venues for org {org_id}: {str(e)}", exc_info=True)
            raise


async def load_org_venues(org_id: str) -> List[VenueRecord]:
    """Venue loader for the process-wide VenueCache; opens its own session."""
    async with async_session_maker() as session:
        return await OrganizationRecordRepository(session).list_venues(org_id)
