"""Layered fact extraction: deterministic rules, then an optional AI pass."""

import asyncio
from dataclasses import replace
from typing import List, Optional

from show_import.core.exceptions import ExtractionError
from show_import.models.import_models import Fact, StructuredExtraction, TextChunk
from show_import.services.extraction.ai_extractor import FREE_TEXT_FIELDS, AIFieldExtractor
from show_import.services.extraction.pattern_extractor import PatternExtractor, build_facts
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Riders carry example shows, not the booked one
SOURCE_SCOPE_WEIGHTS = (
    ("rider", 0.5),
)


def source_scope_weight(file_name: str) -> float:
    """Confidence multiplier for facts taken from a document of this name."""
    lowered = (file_name or "").lower()
    for marker, weight in SOURCE_SCOPE_WEIGHTS:
        if marker in lowered:
            return weight
    return 1.0


class FactExtractor:
    """Runs pattern rules and, when configured, the AI pass for each chunk.

    AI failures never fail the chunk: they are logged, appended to the
    caller's error list and the chunk contributes its pattern facts only.
    """

    def __init__(
        self,
        pattern_extractor: PatternExtractor,
        ai_extractor: Optional[AIFieldExtractor] = None,
        ai_timeout_seconds: float = 30,
        chunk_ai_pass: bool = True,
    ):
        self.pattern_extractor = pattern_extractor
        self.ai_extractor = ai_extractor
        self.ai_timeout_seconds = ai_timeout_seconds
        self.chunk_ai_pass = chunk_ai_pass

    @property
    def ai_enabled(self) -> bool:
        return self.ai_extractor is not None

    async def extract(self, chunk: TextChunk, errors: Optional[List[str]] = None) -> List[Fact]:
        """Extract facts from one chunk.

        Args:
            chunk: Chunk to extract from
            errors: Collector for soft failures (AI timeouts, provider errors)

        Returns:
            List[Fact]: Pattern facts followed by AI facts
        """
        facts = self.pattern_extractor.extract(chunk)

        if self.ai_enabled and self.chunk_ai_pass:
            try:
                structured = await asyncio.wait_for(
                    self.ai_extractor.extract_fields(chunk.text, FREE_TEXT_FIELDS),
                    timeout=self.ai_timeout_seconds,
                )
                facts.extend(facts_from_structured(structured, chunk))
            except asyncio.TimeoutError:
                message = (
                    f"AI extraction timed out after {self.ai_timeout_seconds}s for "
                    f"{chunk.file_name or chunk.source_id} chunk {chunk.chunk_index}"
                )
                LOGGER.warning(message, extra={"source_id": chunk.source_id})
                if errors is not None:
                    errors.append(message)
            except Exception as e:
                message = (
                    f"AI extraction failed for {chunk.file_name or chunk.source_id} "
                    f"chunk {chunk.chunk_index}: {e}"
                )
                LOGGER.warning(message, exc_info=True, extra={"source_id": chunk.source_id})
                if errors is not None:
                    errors.append(message)

        weight = source_scope_weight(chunk.file_name)
        if weight != 1.0:
            facts = [replace(f, confidence=f.confidence * weight) for f in facts]
        return facts

    async def extract_enhanced(self, normalized_text: str) -> StructuredExtraction:
        """Run the AI pass once over a job's full normalized text.

        Raises:
            ExtractionError: If AI extraction is not configured, times out or fails
                for any other reason
        """
        if not self.ai_enabled:
            raise ExtractionError("AI-assisted extraction is not configured")

        try:
            return await asyncio.wait_for(
                self.ai_extractor.extract_fields(normalized_text),
                timeout=self.ai_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                f"AI-assisted extraction timed out after {self.ai_timeout_seconds}s",
                original_error=e,
            )
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"AI-assisted extraction failed: {e}", original_error=e)


def facts_from_structured(structured: StructuredExtraction, chunk: TextChunk) -> List[Fact]:
    """Convert AI output into facts attributed to ``chunk``."""
    values = [
        (fact_type, value, confidence)
        for fact_type, (value, confidence) in structured.fields.items()
    ]
    return build_facts(chunk, values, prefix="ai", origin="ai")
