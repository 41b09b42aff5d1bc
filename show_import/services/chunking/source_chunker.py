"""Split raw sources into bounded text chunks for extraction."""

import re
from typing import List, Optional, Sequence

from show_import.models.import_models import RawSource, TextChunk
from show_import.services.chunking.token_counter import TokenCounter
from show_import.services.normalization import normalize
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Coarse to fine. Each separator stays attached to the piece before it so the
# pieces concatenate back to the original text.
_SPLIT_LEVELS = (
    re.compile(r"(?<=\n\n)"),
    re.compile(r"(?<=\n)"),
    re.compile(r"(?<=[.!?;] )"),
    re.compile(r"(?<= )"),
)


class SourceChunker:
    """Chunks a source's normalized text under a token budget.

    Splits prefer paragraph, then line, then sentence, then word boundaries;
    only a single word longer than the budget is cut mid-word.

    Attributes:
        max_tokens: Upper bound per chunk, excluding overlap
        min_tokens: Trailing chunks smaller than this are rebalanced
        overlap_tokens: Tail of the previous chunk repeated at the start of the next
    """

    def __init__(
        self,
        max_tokens: int = 1500,
        min_tokens: int = 100,
        overlap_tokens: int = 0,
        token_counter: Optional[TokenCounter] = None,
    ):
        self.token_counter = token_counter or TokenCounter()
        self.max_tokens = max(1, max_tokens)
        self.min_tokens = min_tokens
        self.overlap_tokens = max(0, overlap_tokens)

    def chunk(self, source: RawSource) -> List[TextChunk]:
        """Chunk one source.

        Args:
            source: Source whose ``raw_text`` is split

        Returns:
            List[TextChunk]: Chunks in source order; empty for blank sources
        """
        text = normalize(source.raw_text)
        if not text:
            return []

        pieces = self._pack(self._split(text, 0))
        pieces = self._rebalance_tail(pieces)

        chunks: List[TextChunk] = []
        offset = 0
        previous = ""
        for index, piece in enumerate(pieces):
            prefix = self._overlap_prefix(previous) if index > 0 else ""
            chunks.append(
                TextChunk(
                    source_id=source.id,
                    text=prefix + piece,
                    chunk_index=index,
                    file_name=source.file_name,
                    start=offset,
                    overlap_chars=len(prefix),
                )
            )
            offset += len(piece)
            previous = piece

        LOGGER.debug(
            f"Chunked source {source.id} into {len(chunks)} chunks",
            extra={"source_id": source.id, "chars": len(text), "max_tokens": self.max_tokens},
        )
        return chunks

    def _count(self, text: str) -> int:
        return self.token_counter.count_tokens(text)

    def _split(self, text: str, level: int) -> List[str]:
        if self.token_counter.can_fit_in_limit(text, self.max_tokens):
            return [text]

        if level >= len(_SPLIT_LEVELS):
            return self._hard_cut(text)

        parts = [p for p in _SPLIT_LEVELS[level].split(text) if p]
        if len(parts) == 1:
            return self._split(text, level + 1)

        pieces: List[str] = []
        for part in parts:
            pieces.extend(self._split(part, level + 1))
        return pieces

    def _hard_cut(self, text: str) -> List[str]:
        pieces: List[str] = []
        rest = text
        while rest:
            size = self._longest_fitting(rest, self.max_tokens)
            pieces.append(rest[:size])
            rest = rest[size:]
        return pieces

    def _longest_fitting(self, text: str, budget: int, from_end: bool = False) -> int:
        """Length of the longest prefix (or suffix) of ``text`` within ``budget``; at least 1."""
        low, high = 1, len(text)
        while low < high:
            mid = (low + high + 1) // 2
            part = text[-mid:] if from_end else text[:mid]
            if self._count(part) <= budget:
                low = mid
            else:
                high = mid - 1
        return low

    def _pack(self, segments: Sequence[str]) -> List[str]:
        groups: List[List[str]] = []
        current: List[str] = []
        current_tokens = 0
        for segment in segments:
            tokens = self._count(segment)
            if current and current_tokens + tokens > self.max_tokens:
                groups.append(current)
                current, current_tokens = [], 0
            current.append(segment)
            current_tokens += tokens
        if current:
            groups.append(current)

        # Joined text can encode to more tokens than its parts did
        packed: List[str] = []
        for group in groups:
            joined = "".join(group)
            if len(group) == 1 or self.token_counter.can_fit_in_limit(joined, self.max_tokens):
                packed.append(joined)
            else:
                packed.extend(self._pack_exact(group))
        return packed

    def _pack_exact(self, segments: Sequence[str]) -> List[str]:
        packed: List[str] = []
        current = ""
        for segment in segments:
            if current and self._count(current + segment) > self.max_tokens:
                packed.append(current)
                current = segment
            else:
                current += segment
        if current:
            packed.append(current)
        return packed

    def _rebalance_tail(self, pieces: List[str]) -> List[str]:
        """Even out an undersized final chunk with its predecessor."""
        if len(pieces) < 2:
            return pieces
        last_tokens = self._count(pieces[-1])
        if last_tokens >= self.min_tokens:
            return pieces

        combined = pieces[-2] + pieces[-1]
        segments = self._split_fine(combined)
        counts = [self._count(s) for s in segments]
        total = sum(counts)

        best = None
        best_score = -1
        cut = 0
        left = 0
        for i in range(1, len(segments)):
            cut += len(segments[i - 1])
            left += counts[i - 1]
            right = total - left
            if left > self.max_tokens or right > self.max_tokens:
                continue
            score = min(left, right)
            if score > best_score:
                best, best_score = cut, score

        if best is None or best_score <= last_tokens:
            return pieces
        head, tail = combined[:best], combined[best:]
        if self._count(head) > self.max_tokens or self._count(tail) > self.max_tokens:
            return pieces
        return pieces[:-2] + [head, tail]

    def _split_fine(self, text: str) -> List[str]:
        segments = [text]
        for pattern in _SPLIT_LEVELS[1:]:
            refined: List[str] = []
            for seg in segments:
                refined.extend(p for p in pattern.split(seg) if p)
            segments = refined
        return segments

    def _overlap_prefix(self, previous: str) -> str:
        """Whole trailing words of ``previous`` within the overlap budget."""
        if not self.overlap_tokens or len(previous) < 2:
            return ""
        words = [w for w in _SPLIT_LEVELS[-1].split(previous) if w]
        tail = ""
        for word in reversed(words[1:]):
            candidate = word + tail
            if self._count(candidate) > self.overlap_tokens:
                break
            tail = candidate
        if tail:
            return tail
        # Last word alone is over budget
        return previous[-self._longest_fitting(previous[1:], self.overlap_tokens, from_end=True):]


def reconstruct(chunks: Sequence[TextChunk]) -> str:
    """Rebuild a source's normalized text from its chunks, dropping overlap."""
    return "".join(chunk.own_text for chunk in sorted(chunks, key=lambda c: c.chunk_index))
