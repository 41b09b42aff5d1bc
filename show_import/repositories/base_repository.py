"""Shared session handling for the repositories."""

from datetime import datetime, timezone
from typing import Generic, Type, TypeVar

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from show_import.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Repository bound to one session and one mapped class.

    Writes flush then commit. A SQLAlchemy failure rolls the session back,
    is logged with the model name and is re-raised unchanged.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    async def _commit(self, action: str, instance: ModelType) -> ModelType:
        # Rollback expires the instance; its attributes cannot be read afterwards
        identity = inspect(instance).identity
        record_id = str(identity[0]) if identity else None
        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Could not {action} {self.model.__name__}: {e}",
                exc_info=True,
                extra={"record_id": record_id},
            )
            raise
        return instance

    async def create(self, **fields) -> ModelType:
        """Insert a new ``model`` row built from ``fields``."""
        instance = self.model(**fields)
        self.session.add(instance)
        return await self._commit("create", instance)

    async def update(self, instance: ModelType, **fields) -> ModelType:
        """Set ``fields`` on a loaded row, stamp ``updated_at`` and persist.

        Unknown field names are ignored.
        """
        for name, value in fields.items():
            if hasattr(instance, name):
                setattr(instance, name, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = datetime.now(timezone.utc)
        return await self._commit("update", instance)
