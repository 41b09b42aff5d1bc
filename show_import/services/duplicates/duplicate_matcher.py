"""Fuzzy matching of import candidates against existing shows and venues."""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from rapidfuzz import fuzz, utils

from show_import.core.exceptions import DuplicateMatchError
from show_import.models.import_models import DuplicateMatch
from show_import.services.duplicates.venue_cache import VenueCache
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

SHOW_WEIGHTS = {"name": 0.45, "date": 0.30, "city": 0.10, "venue": 0.15}
VENUE_WEIGHTS = {"name": 0.75, "city": 0.25}
FIELD_MATCH_THRESHOLD = 0.85


@dataclass(frozen=True)
class ShowRecord:
    id: str
    title: str
    date: Optional[str] = None
    city: Optional[str] = None
    venue_name: Optional[str] = None


@dataclass(frozen=True)
class VenueRecord:
    id: str
    name: str
    city: Optional[str] = None


class OrganizationRecordSource(Protocol):
    """Read-only view of an organization's existing shows and venues."""

    async def list_shows(self, org_id: str) -> List[ShowRecord]:
        ...

    async def list_venues(self, org_id: str) -> List[VenueRecord]:
        ...


def name_similarity(left: Optional[str], right: Optional[str]) -> float:
    """Case and punctuation insensitive fuzzy similarity in [0, 1]."""
    if not left or not right:
        return 0.0
    return fuzz.token_sort_ratio(left, right, processor=utils.default_process) / 100.0


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        return None


def date_proximity(left: Any, right: Any, window_days: int = 1) -> float:
    """1.0 for the same day, 0.5 within ``window_days``, else 0."""
    left_date, right_date = _to_date(left), _to_date(right)
    if left_date is None or right_date is None:
        return 0.0
    delta = abs((left_date - right_date).days)
    if delta == 0:
        return 1.0
    if delta <= window_days:
        return 0.5
    return 0.0


def city_match(left: Optional[str], right: Optional[str]) -> float:
    if not left or not right:
        return 0.0
    return 1.0 if left.strip().casefold() == right.strip().casefold() else 0.0


def _weighted(scores: Dict[str, float], weights: Mapping[str, float]) -> float:
    """Weighted mean over the dimensions present in ``scores``."""
    total_weight = sum(weights[k] for k in scores)
    if total_weight <= 0:
        return 0.0
    return sum(weights[k] * s for k, s in scores.items()) / total_weight


class DuplicateMatcher:
    """Ranks existing organization records that look like a candidate.

    Only dimensions present on the candidate count toward the score, so a
    candidate with just a title and date is judged on those two alone.
    """

    def __init__(
        self,
        record_source: OrganizationRecordSource,
        venue_cache: Optional[VenueCache] = None,
        min_score: float = 0.6,
        top_n: int = 5,
        date_window_days: int = 1,
    ):
        self.record_source = record_source
        self.venue_cache = venue_cache or VenueCache(record_source.list_venues)
        self.min_score = min_score
        self.top_n = top_n
        self.date_window_days = date_window_days

    async def find_duplicates(
        self, org_id: str, candidate_structured: Mapping[str, Any]
    ) -> List[DuplicateMatch]:
        """Find existing shows and venues similar to a candidate.

        Args:
            org_id: Organization whose records are compared
            candidate_structured: Resolved candidate values keyed by fact type

        Returns:
            At most ``top_n`` matches scoring ``min_score`` or more, best first

        Raises:
            DuplicateMatchError: If organization records cannot be read
        """
        title = candidate_structured.get("event_title") or candidate_structured.get("title")
        venue_name = candidate_structured.get("venue_name")
        if not title and not venue_name:
            return []

        try:
            shows = await self.record_source.list_shows(org_id) if title else []
            venues = await self.venue_cache.get(org_id) if venue_name else []
        except Exception as e:
            raise DuplicateMatchError(f"Failed to load records for org {org_id}: {e}", original_error=e)

        matches = [self._score_show(candidate_structured, show) for show in shows]
        matches += [self._score_venue(candidate_structured, venue) for venue in venues]

        ranked = sorted(
            (m for m in matches if m.similarity_score >= self.min_score),
            key=lambda m: (-m.similarity_score, m.matched_entity_id),
        )[: self.top_n]

        LOGGER.info(
            f"Found {len(ranked)} duplicate matches",
            extra={"org_id": org_id, "shows_compared": len(shows), "venues_compared": len(venues)},
        )
        return ranked

    def _score_show(self, candidate: Mapping[str, Any], show: ShowRecord) -> DuplicateMatch:
        title = candidate.get("event_title") or candidate.get("title")
        scores = {"name": name_similarity(title, show.title)}
        if candidate.get("date"):
            scores["date"] = date_proximity(candidate["date"], show.date, self.date_window_days)
        if candidate.get("city"):
            scores["city"] = city_match(candidate["city"], show.city)
        if candidate.get("venue_name"):
            scores["venue"] = name_similarity(candidate["venue_name"], show.venue_name)

        return DuplicateMatch(
            matched_entity_id=show.id,
            matched_entity_type="show",
            similarity_score=round(_weighted(scores, SHOW_WEIGHTS), 4),
            matched_fields=self._matched_fields(scores),
            label=show.title,
        )

    def _score_venue(self, candidate: Mapping[str, Any], venue: VenueRecord) -> DuplicateMatch:
        scores = {"name": name_similarity(candidate.get("venue_name"), venue.name)}
        if candidate.get("city"):
            scores["city"] = city_match(candidate["city"], venue.city)

        return DuplicateMatch(
            matched_entity_id=venue.id,
            matched_entity_type="venue",
            similarity_score=round(_weighted(scores, VENUE_WEIGHTS), 4),
            matched_fields=self._matched_fields(scores),
            label=venue.name,
        )

    @staticmethod
    def _matched_fields(scores: Dict[str, float]) -> List[str]:
        fields: List[Tuple[str, bool]] = [
            ("name", scores.get("name", 0.0) >= FIELD_MATCH_THRESHOLD),
            ("date", scores.get("date", 0.0) > 0),
            ("city", scores.get("city", 0.0) > 0),
            ("venue", scores.get("venue", 0.0) >= FIELD_MATCH_THRESHOLD),
        ]
        return [name for name, matched in fields if matched]
