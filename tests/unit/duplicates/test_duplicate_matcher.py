"""Unit tests for DuplicateMatcher and VenueCache."""

from unittest.mock import AsyncMock

import pytest

from show_import.core.exceptions import DuplicateMatchError
from show_import.services.duplicates import (
    DuplicateMatcher,
    ShowRecord,
    VenueCache,
    VenueRecord,
)
from show_import.services.duplicates.duplicate_matcher import date_proximity, name_similarity


class FakeRecords:
    """In-memory organization records."""

    def __init__(self, shows=(), venues=()):
        self.shows = list(shows)
        self.venues = list(venues)
        self.show_calls = 0
        self.venue_calls = 0

    async def list_shows(self, org_id):
        self.show_calls += 1
        return self.shows

    async def list_venues(self, org_id):
        self.venue_calls += 1
        return self.venues


SUMMER_FEST = ShowRecord(id="show-1", title="Summer Fest", date="2025-07-15", venue_name="MSG")


class TestSimilarityHelpers:
    def test_name_similarity_ignores_case_and_punctuation(self):
        assert name_similarity("Summer Fest!", "summer  fest") == pytest.approx(1.0)

    def test_name_similarity_missing_side(self):
        assert name_similarity(None, "Summer Fest") == 0.0

    @pytest.mark.parametrize(
        "left,right,expected",
        [
            ("2025-07-15", "2025-07-15", 1.0),
            ("2025-07-15", "2025-07-16", 0.5),
            ("2025-07-15", "2025-07-20", 0.0),
            ("2025-07-15", None, 0.0),
        ],
    )
    def test_date_proximity(self, left, right, expected):
        assert date_proximity(left, right) == expected


class TestDuplicateMatcher:
    """Scoring and ranking of existing records."""

    @pytest.mark.asyncio
    async def test_exact_show_match(self):
        matcher = DuplicateMatcher(FakeRecords(shows=[SUMMER_FEST]))

        matches = await matcher.find_duplicates(
            "org-1", {"event_title": "Summer Fest", "date": "2025-07-15", "venue_name": "MSG"}
        )

        assert len(matches) == 1
        assert matches[0].matched_entity_id == "show-1"
        assert matches[0].matched_entity_type == "show"
        assert matches[0].similarity_score == pytest.approx(1.0)
        assert matches[0].matched_fields == ["name", "date", "venue"]
        assert matches[0].label == "Summer Fest"

    @pytest.mark.asyncio
    async def test_only_present_dimensions_are_weighted(self):
        matcher = DuplicateMatcher(FakeRecords(shows=[SUMMER_FEST]))

        matches = await matcher.find_duplicates(
            "org-1", {"event_title": "Summer Fest", "date": "2025-07-16"}
        )

        # (0.45 * 1.0 + 0.30 * 0.5) / 0.75
        assert matches[0].similarity_score == pytest.approx(0.8)
        assert matches[0].matched_fields == ["name", "date"]

    @pytest.mark.asyncio
    async def test_unrelated_show_is_not_reported(self):
        matcher = DuplicateMatcher(FakeRecords(shows=[SUMMER_FEST]))

        matches = await matcher.find_duplicates(
            "org-1", {"event_title": "Winter Ball", "date": "2025-12-05"}
        )

        assert matches == []

    @pytest.mark.asyncio
    async def test_results_are_bounded_and_sorted(self):
        shows = [
            ShowRecord(id=f"show-{i}", title=f"Summer Fest {i}", date="2025-07-15")
            for i in range(10)
        ]
        matcher = DuplicateMatcher(FakeRecords(shows=shows), min_score=0.6, top_n=3)

        matches = await matcher.find_duplicates(
            "org-1", {"event_title": "Summer Fest", "date": "2025-07-15"}
        )

        scores = [m.similarity_score for m in matches]
        assert len(matches) == 3
        assert scores == sorted(scores, reverse=True)
        assert all(score >= 0.6 for score in scores)

    @pytest.mark.asyncio
    async def test_equal_scores_are_ordered_by_id(self):
        shows = [
            ShowRecord(id="show-b", title="Summer Fest", date="2025-07-15"),
            ShowRecord(id="show-a", title="Summer Fest", date="2025-07-15"),
        ]
        matcher = DuplicateMatcher(FakeRecords(shows=shows))

        matches = await matcher.find_duplicates("org-1", {"title": "Summer Fest"})

        assert [m.matched_entity_id for m in matches] == ["show-a", "show-b"]

    @pytest.mark.asyncio
    async def test_venue_match(self):
        records = FakeRecords(venues=[VenueRecord(id="venue-1", name="Madison Square Garden", city="new york")])
        matcher = DuplicateMatcher(records)

        matches = await matcher.find_duplicates(
            "org-1", {"venue_name": "Madison Square Garden", "city": "New York"}
        )

        assert len(matches) == 1
        assert matches[0].matched_entity_type == "venue"
        assert matches[0].similarity_score == pytest.approx(1.0)
        assert matches[0].matched_fields == ["name", "city"]
        assert records.show_calls == 0

    @pytest.mark.asyncio
    async def test_candidate_without_name_is_skipped(self):
        records = FakeRecords(shows=[SUMMER_FEST])

        matches = await DuplicateMatcher(records).find_duplicates("org-1", {"date": "2025-07-15"})

        assert matches == []
        assert records.show_calls == 0
        assert records.venue_calls == 0

    @pytest.mark.asyncio
    async def test_load_failure_raises_duplicate_match_error(self):
        records = FakeRecords()
        records.list_shows = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(DuplicateMatchError, match="connection reset"):
            await DuplicateMatcher(records).find_duplicates("org-1", {"event_title": "Summer Fest"})

    @pytest.mark.asyncio
    async def test_venues_come_from_the_cache(self):
        records = FakeRecords(venues=[VenueRecord(id="venue-1", name="MSG")])
        matcher = DuplicateMatcher(records, venue_cache=VenueCache(records.list_venues))

        await matcher.find_duplicates("org-1", {"venue_name": "MSG"})
        await matcher.find_duplicates("org-1", {"venue_name": "MSG"})

        assert records.venue_calls == 1


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestVenueCache:
    """TTL and invalidation."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def loader(self):
        return AsyncMock(side_effect=lambda org_id: [VenueRecord(id=f"{org_id}-venue", name="MSG")])

    @pytest.mark.asyncio
    async def test_second_read_is_cached(self, loader, clock):
        cache = VenueCache(loader, ttl_seconds=60, clock=clock)

        first = await cache.get("org-1")
        second = await cache.get("org-1")

        assert first == second
        loader.assert_awaited_once_with("org-1")

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, loader, clock):
        cache = VenueCache(loader, ttl_seconds=60, clock=clock)

        await cache.get("org-1")
        clock.now += 61
        await cache.get("org-1")

        assert loader.await_count == 2

    @pytest.mark.asyncio
    async def test_organizations_are_cached_separately(self, loader, clock):
        cache = VenueCache(loader, ttl_seconds=60, clock=clock)

        venues_a = await cache.get("org-a")
        venues_b = await cache.get("org-b")

        assert venues_a[0].id == "org-a-venue"
        assert venues_b[0].id == "org-b-venue"

    @pytest.mark.asyncio
    async def test_invalidate_one_organization(self, loader, clock):
        cache = VenueCache(loader, ttl_seconds=60, clock=clock)
        await cache.get("org-a")
        await cache.get("org-b")

        cache.invalidate("org-a")
        await cache.get("org-a")
        await cache.get("org-b")

        assert loader.await_count == 3

    @pytest.mark.asyncio
    async def test_invalidate_everything(self, loader, clock):
        cache = VenueCache(loader, ttl_seconds=60, clock=clock)
        await cache.get("org-a")

        cache.invalidate()
        await cache.get("org-a")

        assert loader.await_count == 2
