"""Deterministic regex-based fact extraction.

High-precision, low-recall rules that run on every chunk before (and
independently of) the AI-assisted pass: labeled "Field: value" lines, dates,
contact details, amounts next to deal keywords, times next to schedule
keywords and known city names.
"""

import re
from typing import Iterable, List, Optional, Sequence

from show_import.models.import_models import Fact, FactType, FactValue, TextChunk, TextValue
from show_import.services.extraction.field_aliases import lookup_field
from show_import.services.extraction.value_parsers import (
    EMAIL_PATTERN,
    MONEY_PATTERN,
    PHONE_PATTERN,
    build_value,
    find_dates,
    find_times,
    parse_money,
)
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

LABELED_LINE = re.compile(r"^([A-Za-z][\w &'/.\-]{0,40}?)\s*(?::|\s[-–]\s)\s*(.+)$")

TIME_CONTEXT = (
    (FactType.SOUNDCHECK_TIME, ("soundcheck", "sound check", "line check")),
    (FactType.DOOR_TIME, ("doors",)),
    (FactType.SET_TIME, ("set time", "on stage", "stage time", "set:")),
    (FactType.SHOW_TIME, ("show time", "showtime", "start")),
)
MONEY_CONTEXT = (
    (FactType.GUARANTEE, ("guarantee",)),
    (FactType.FEE, ("fee", "deal", "payment")),
)
PHONE_CONTEXT = ("phone", "tel", "mobile", "cell")


class PatternExtractor:
    """Regex rules producing facts for one chunk.

    Attributes:
        known_cities: City names recognized anywhere in the text
    """

    LABELED_CONFIDENCE = 0.9
    EMAIL_CONFIDENCE = 0.95
    PHONE_CONFIDENCE = 0.75
    MONEY_CONFIDENCE = 0.75
    TIME_CONFIDENCE = 0.7
    DATE_CONFIDENCE = 0.6
    CITY_CONFIDENCE = 0.5

    def __init__(self, known_cities: Optional[Sequence[str]] = None):
        self.known_cities = list(known_cities or [])
        self._city_patterns = [
            (city, re.compile(rf"\b{re.escape(city)}\b", re.IGNORECASE))
            for city in self.known_cities
        ]

    def extract(self, chunk: TextChunk) -> List[Fact]:
        """Extract facts from the chunk's own text (overlap excluded).

        Args:
            chunk: Chunk to scan

        Returns:
            List[Fact]: Facts in line order; ids are stable for the same input
        """
        builder = _FactBuilder(chunk)

        for line in chunk.own_text.split("\n"):
            line = line.strip()
            if not line:
                continue

            labeled_type = self._extract_labeled(line, builder)
            lowered = line.lower()

            if labeled_type != FactType.CONTACT_EMAIL:
                for match in EMAIL_PATTERN.finditer(line):
                    builder.add(FactType.CONTACT_EMAIL, match.group(0), self.EMAIL_CONFIDENCE)

            if labeled_type != FactType.CONTACT_PHONE and any(k in lowered for k in PHONE_CONTEXT):
                match = PHONE_PATTERN.search(line)
                if match:
                    builder.add(FactType.CONTACT_PHONE, match.group(0), self.PHONE_CONFIDENCE)

            if labeled_type is not None:
                continue

            for iso, _, _ in find_dates(line):
                builder.add(FactType.DATE, iso, self.DATE_CONFIDENCE)
            self._extract_contextual_time(line, lowered, builder)
            self._extract_contextual_money(line, lowered, builder)

        self._extract_cities(chunk.own_text, builder)

        LOGGER.debug(
            f"Pattern extraction produced {len(builder.facts)} facts",
            extra={"source_id": chunk.source_id, "chunk_index": chunk.chunk_index},
        )
        return builder.facts

    def _extract_labeled(self, line: str, builder: "_FactBuilder") -> Optional[FactType]:
        match = LABELED_LINE.match(line)
        if not match:
            return None
        fact_type = lookup_field(match.group(1))
        if fact_type is None:
            return None

        raw_value = match.group(2)
        if fact_type == FactType.CONTACT_NAME:
            raw_value = PHONE_PATTERN.sub("", EMAIL_PATTERN.sub("", raw_value))
        builder.add(fact_type, raw_value, self.LABELED_CONFIDENCE, raw_text=line)
        return fact_type

    def _extract_contextual_time(self, line: str, lowered: str, builder: "_FactBuilder") -> None:
        for fact_type, keywords in TIME_CONTEXT:
            if any(k in lowered for k in keywords):
                for hhmmss, _, _ in find_times(line):
                    builder.add(fact_type, hhmmss, self.TIME_CONFIDENCE, raw_text=line)
                    return

    def _extract_contextual_money(self, line: str, lowered: str, builder: "_FactBuilder") -> None:
        if not MONEY_PATTERN.search(line):
            return
        for fact_type, keywords in MONEY_CONTEXT:
            if any(k in lowered for k in keywords):
                money = parse_money(line)
                if money:
                    builder.add_value(fact_type, money, self.MONEY_CONFIDENCE, raw_text=line)
                return

    def _extract_cities(self, text: str, builder: "_FactBuilder") -> None:
        for city, pattern in self._city_patterns:
            if pattern.search(text):
                builder.add_value(FactType.CITY, TextValue(city), self.CITY_CONFIDENCE, raw_text=city)


class _FactBuilder:
    """Accumulates facts for one chunk with deterministic ids."""

    def __init__(self, chunk: TextChunk, prefix: str = "", origin: str = "pattern"):
        self.chunk = chunk
        self.prefix = prefix
        self.origin = origin
        self.facts: List[Fact] = []

    def add(self, fact_type: FactType, raw: str, confidence: float, raw_text: str = "") -> None:
        value = build_value(fact_type, raw)
        if value is not None:
            self.add_value(fact_type, value, confidence, raw_text=raw_text or raw)

    def add_value(
        self, fact_type: FactType, value: FactValue, confidence: float, raw_text: str = ""
    ) -> None:
        self.facts.append(
            Fact(
                fact_id=f"{self.chunk.source_id}:{self.chunk.chunk_index}:{self.prefix}{len(self.facts)}",
                fact_type=fact_type,
                value=value,
                source_id=self.chunk.source_id,
                chunk_index=self.chunk.chunk_index,
                confidence=confidence,
                raw_text=raw_text,
                origin=self.origin,
            )
        )


def build_facts(
    chunk: TextChunk,
    values: Iterable[tuple],
    prefix: str,
    origin: str,
) -> List[Fact]:
    """Build facts from ``(fact_type, raw_value, confidence)`` triples.

    Used for AI output and CSV rows so they share id and parsing rules with
    the pattern rules.
    """
    builder = _FactBuilder(chunk, prefix=prefix, origin=origin)
    for fact_type, raw_value, confidence in values:
        builder.add(fact_type, raw_value, confidence)
    return builder.facts
