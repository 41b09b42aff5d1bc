"""Per-organization venue cache with an explicit TTL."""

import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

VenueLoader = Callable[[str], Awaitable[List]]


class VenueCache:
    """Caches an organization's venue list for duplicate matching.

    Entries expire ``ttl_seconds`` after they were loaded. Callers that write
    venues should call ``invalidate(org_id)``.

    Attributes:
        loader: Coroutine function returning the venues of one organization
        ttl_seconds: Lifetime of a cached entry
    """

    def __init__(
        self,
        loader: VenueLoader,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List]] = {}

    async def get(self, org_id: str) -> List:
        """Return the cached venues for ``org_id``, loading them when stale."""
        now = self._clock()
        entry = self._entries.get(org_id)
        if entry is not None and entry[0] > now:
            return entry[1]

        venues = list(await self.loader(org_id))
        self._entries[org_id] = (now + self.ttl_seconds, venues)
        LOGGER.debug(
            f"Loaded {len(venues)} venues into cache",
            extra={"org_id": org_id, "ttl_seconds": self.ttl_seconds},
        )
        return venues

    def invalidate(self, org_id: Optional[str] = None) -> None:
        """Drop one organization's entry, or every entry when ``org_id`` is None."""
        if org_id is None:
            self._entries.clear()
        else:
            self._entries.pop(org_id, None)
