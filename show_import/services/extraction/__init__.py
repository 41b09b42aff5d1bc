"""Fact extraction: pattern rules, AI-assisted pass and CSV rows."""

from show_import.services.extraction.ai_extractor import AIFieldExtractor
from show_import.services.extraction.csv_rows import extract_row_facts
from show_import.services.extraction.fact_extractor import (
    FactExtractor,
    facts_from_structured,
    source_scope_weight,
)
from show_import.services.extraction.field_aliases import lookup_field, map_row
from show_import.services.extraction.pattern_extractor import PatternExtractor

__all__ = [
    "AIFieldExtractor",
    "FactExtractor",
    "PatternExtractor",
    "extract_row_facts",
    "facts_from_structured",
    "lookup_field",
    "map_row",
    "source_scope_weight",
]
