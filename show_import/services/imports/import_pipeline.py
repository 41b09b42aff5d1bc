"""Extraction pipeline: chunk → extract → resolve → match duplicates.

The pipeline holds no job state. ``ImportJobService`` feeds it the stored
sources and persists what it returns.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from show_import.core.exceptions import ExtractionError
from show_import.models.import_models import (
    ExtractionMode,
    Fact,
    ImportCandidate,
    ProgressStage,
    RawSource,
    TextChunk,
)
from show_import.services.chunking import SourceChunker
from show_import.services.duplicates import DuplicateMatcher
from show_import.services.extraction import FactExtractor, extract_row_facts, facts_from_structured
from show_import.services.normalization import normalize
from show_import.services.resolution import FactResolver
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

StageCallback = Callable[[ProgressStage], Awaitable[None]]

ENHANCED_SOURCE_ID = "ai_enhanced"


@dataclass
class PipelineResult:
    """What one pipeline run produced."""

    candidates: List[ImportCandidate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    extraction_mode: ExtractionMode = ExtractionMode.HEURISTIC
    source_tag: str = "text"

    @property
    def needs_review(self) -> bool:
        return any(c.is_ambiguous or c.duplicates for c in self.candidates)

    @property
    def confidence_map(self) -> Dict[str, Dict[str, float]]:
        return {c.candidate_id: dict(c.confidence_map) for c in self.candidates}

    @property
    def duplicate_matches(self) -> List[Dict[str, Any]]:
        return [
            {"candidate_id": c.candidate_id, **match.to_dict()}
            for c in self.candidates
            for match in c.duplicates
        ]


class ImportPipeline:
    """Runs the extraction stages over a job's sources."""

    def __init__(
        self,
        chunker: SourceChunker,
        fact_extractor: FactExtractor,
        resolver: FactResolver,
        duplicate_matcher: DuplicateMatcher,
        concurrency: int = 4,
    ):
        self.chunker = chunker
        self.fact_extractor = fact_extractor
        self.resolver = resolver
        self.duplicate_matcher = duplicate_matcher
        self.concurrency = max(1, concurrency)

    async def run(
        self,
        org_id: str,
        sources: Sequence[RawSource],
        enhanced: bool = False,
        on_stage: Optional[StageCallback] = None,
    ) -> PipelineResult:
        """Run every stage and return the candidates.

        Args:
            org_id: Organization whose records are used for duplicate matching
            sources: Sources in submission order
            enhanced: Also run the AI pass over the full normalized text
            on_stage: Awaited with each progress stage as it starts

        Returns:
            PipelineResult; soft extraction failures are in ``errors``

        Raises:
            PipelineError: If resolution or duplicate matching fails
        """
        result = PipelineResult()
        text_sources = [s for s in sources if s.has_text and not s.is_csv]
        csv_sources = [s for s in sources if s.has_text and s.is_csv]
        result.source_tag = self._source_tag(text_sources, csv_sources)

        await self._notify(on_stage, ProgressStage.EXTRACTING_FACTS)
        chunks = [chunk for source in text_sources for chunk in self.chunker.chunk(source)]
        text_facts = await self._extract_all(chunks, result.errors)

        structured_raw: Optional[Dict[str, Any]] = None
        if enhanced:
            structured_raw = await self._extract_enhanced(text_sources, text_facts, result)

        await self._notify(on_stage, ProgressStage.RESOLVING)
        if text_sources or not csv_sources:
            candidate = self.resolver.resolve(text_facts, candidate_id="candidate-0").candidate
            if structured_raw is not None:
                candidate.structured["ai_extraction"] = structured_raw
            result.candidates.append(candidate)

        for source in csv_sources:
            rows = extract_row_facts(source.id, source.raw_text, source.file_name)
            for row_number, row_facts in rows:
                resolution = self.resolver.resolve(
                    row_facts, candidate_id=f"{source.id}-row-{row_number}"
                )
                result.candidates.append(resolution.candidate)

        await self._notify(on_stage, ProgressStage.MATCHING_DUPLICATES)
        for candidate in result.candidates:
            candidate.duplicates = await self.duplicate_matcher.find_duplicates(
                org_id, candidate.structured
            )

        LOGGER.info(
            f"Pipeline produced {len(result.candidates)} candidates from {len(chunks)} chunks",
            extra={
                "org_id": org_id,
                "fact_count": len(text_facts),
                "error_count": len(result.errors),
                "extraction_mode": result.extraction_mode.value,
            },
        )
        return result

    async def _extract_all(self, chunks: List[TextChunk], errors: List[str]) -> List[Fact]:
        """Extract chunks concurrently; facts and errors come back in chunk order."""
        semaphore = asyncio.Semaphore(self.concurrency)
        chunk_errors: List[List[str]] = [[] for _ in chunks]

        async def extract_one(index: int, chunk: TextChunk) -> List[Fact]:
            async with semaphore:
                return await self.fact_extractor.extract(chunk, chunk_errors[index])

        per_chunk = await asyncio.gather(*(extract_one(i, c) for i, c in enumerate(chunks)))
        for messages in chunk_errors:
            errors.extend(messages)
        return [fact for facts in per_chunk for fact in facts]

    async def _extract_enhanced(
        self,
        text_sources: Sequence[RawSource],
        facts: List[Fact],
        result: PipelineResult,
    ) -> Optional[Dict[str, Any]]:
        full_text = "\n\n".join(normalize(s.raw_text) for s in text_sources).strip()
        if not full_text:
            result.errors.append("AI-assisted extraction skipped: no text to read")
            return None

        try:
            structured = await self.fact_extractor.extract_enhanced(full_text)
        except ExtractionError as e:
            LOGGER.warning(f"AI-assisted extraction failed: {e}")
            result.errors.append(str(e))
            return None

        chunk = TextChunk(source_id=ENHANCED_SOURCE_ID, text=full_text, chunk_index=0)
        facts.extend(facts_from_structured(structured, chunk))
        result.extraction_mode = ExtractionMode.AI_ASSISTED
        return structured.raw

    @staticmethod
    def _source_tag(text_sources: Sequence[RawSource], csv_sources: Sequence[RawSource]) -> str:
        if text_sources and csv_sources:
            return "mixed"
        if csv_sources:
            return "csv"
        return "text"

    @staticmethod
    async def _notify(on_stage: Optional[StageCallback], stage: ProgressStage) -> None:
        if on_stage is not None:
            await on_stage(stage)
