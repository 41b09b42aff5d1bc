"""Template for services entered through ``execute``."""

import time
from abc import ABC, abstractmethod
from typing import Any

from show_import.core.exceptions import AppError
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Validate, run, and normalize failures.

    ``AppError`` subclasses pass through unchanged so callers can map them to
    HTTP statuses; anything else is logged and wrapped in ``AppError``.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Run ``validate`` then ``run`` with the same arguments.

        Raises:
            AppError: Validation failures, domain errors, or a wrapped
                unexpected exception
        """
        service_name = self.__class__.__name__
        started = time.perf_counter()
        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)
        except AppError as e:
            self.logger.info(
                f"{service_name} stopped with {e.code}: {e.message}",
                extra={"service": service_name},
            )
            raise
        except Exception as e:
            self.logger.error(
                f"{service_name} failed unexpectedly: {e}",
                exc_info=True,
                extra={"service": service_name},
            )
            raise AppError(f"Service execution failed: {e}", original_error=e)
        finally:
            self.logger.debug(
                f"{service_name} finished",
                extra={"service": service_name, "elapsed_ms": round((time.perf_counter() - started) * 1000, 1)},
            )

    def validate(self, *args, **kwargs) -> None:
        """Reject bad input before any work happens.

        Raises:
            ValidationError: If input is invalid
        """

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        ...
