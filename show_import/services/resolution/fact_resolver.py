"""Fact resolution: merge facts of the same type into one candidate field.

Facts are grouped per type by the canonical form of their payload, so the
same date written as "Jul 15, 2025" and "2025-07-15" counts as one value seen
twice. Value groups are scored, and the top group is either selected or, when
the runner-up is within ``ambiguity_epsilon``, left for the reviewer.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from show_import.models.import_models import (
    Fact,
    FactType,
    ImportCandidate,
    Resolution,
    ResolutionResult,
    ResolutionState,
)
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

CANDIDATE_FIELDS = {
    FactType.EVENT_TITLE: "title",
    FactType.DATE: "date",
    FactType.CITY: "city",
    FactType.VENUE_NAME: "venue_name",
    FactType.SET_TIME: "set_time",
    FactType.NOTES: "notes",
}


@dataclass
class _ValueGroup:
    canonical: str
    facts: List[Fact] = field(default_factory=list)
    score: float = 0.0

    @property
    def best_fact(self) -> Fact:
        # max() keeps the first of equal confidences
        return max(self.facts, key=lambda f: f.confidence)

    def to_alternative(self) -> Dict[str, object]:
        best = self.best_fact
        return {
            "value": best.value.display(),
            "canonical": self.canonical,
            "confidence": round(self.score, 4),
            "fact_ids": [f.fact_id for f in self.facts],
            "source_ids": sorted({f.source_id for f in self.facts}),
        }


class FactResolver:
    """Resolves a fact list into one ImportCandidate.

    Attributes:
        acceptance_threshold: Score a value must exceed to be selected
        ambiguity_epsilon: Gap below which the top two values are a tie
        repetition_boost: Score added per additional fact agreeing on a value
        max_repetition_boost: Cap on the total repetition boost
    """

    def __init__(
        self,
        acceptance_threshold: float = 0.35,
        ambiguity_epsilon: float = 0.05,
        repetition_boost: float = 0.05,
        max_repetition_boost: float = 0.15,
    ):
        self.acceptance_threshold = acceptance_threshold
        self.ambiguity_epsilon = ambiguity_epsilon
        self.repetition_boost = repetition_boost
        self.max_repetition_boost = max_repetition_boost

    def resolve(self, facts: Sequence[Fact], candidate_id: str = "candidate-0") -> ResolutionResult:
        """Resolve facts into a candidate plus one Resolution per fact type.

        Args:
            facts: Facts in chunk order; order is the final tie-break
            candidate_id: Identifier given to the produced candidate

        Returns:
            ResolutionResult with the candidate and its resolutions
        """
        by_type: Dict[FactType, List[Fact]] = {}
        for fact in facts:
            by_type.setdefault(fact.fact_type, []).append(fact)

        candidate = ImportCandidate(candidate_id=candidate_id)
        resolutions: List[Resolution] = []

        for fact_type in FactType:
            resolution, selected = self._resolve_type(fact_type, by_type.get(fact_type, []))
            resolutions.append(resolution)

            if resolution.state == ResolutionState.UNRESOLVED:
                candidate.confidence_map[fact_type.value] = 0.0
            else:
                candidate.confidence_map[fact_type.value] = resolution.confidence

            if selected is not None:
                display = selected.value.display()
                candidate.structured[fact_type.value] = display
                if fact_type in CANDIDATE_FIELDS:
                    setattr(candidate, CANDIDATE_FIELDS[fact_type], display)

        candidate.resolutions = resolutions

        LOGGER.debug(
            f"Resolved {len(facts)} facts into candidate {candidate_id}",
            extra={
                "resolved": sum(r.state == ResolutionState.RESOLVED for r in resolutions),
                "ambiguous": sum(r.state == ResolutionState.AMBIGUOUS for r in resolutions),
            },
        )
        return ResolutionResult(candidate=candidate, resolutions=resolutions)

    def _resolve_type(self, fact_type: FactType, facts: List[Fact]):
        if not facts:
            return Resolution(fact_type=fact_type, state=ResolutionState.UNRESOLVED), None

        groups = self._group(facts)
        # sorted() is stable: equal scores keep first-seen order
        groups = sorted(groups, key=lambda g: g.score, reverse=True)
        top = groups[0]
        alternatives = [g.to_alternative() for g in groups] if len(groups) > 1 else []

        if len(groups) > 1 and top.score - groups[1].score < self.ambiguity_epsilon:
            return (
                Resolution(
                    fact_type=fact_type,
                    state=ResolutionState.AMBIGUOUS,
                    selected_fact_id=None,
                    confidence=round(top.score, 4),
                    alternatives=alternatives,
                ),
                None,
            )

        if top.score <= self.acceptance_threshold:
            return (
                Resolution(
                    fact_type=fact_type,
                    state=ResolutionState.UNRESOLVED,
                    confidence=round(top.score, 4),
                    alternatives=alternatives,
                ),
                None,
            )

        selected = top.best_fact
        return (
            Resolution(
                fact_type=fact_type,
                state=ResolutionState.RESOLVED,
                selected_fact_id=selected.fact_id,
                confidence=round(top.score, 4),
                alternatives=alternatives,
            ),
            selected,
        )

    def _group(self, facts: List[Fact]) -> List[_ValueGroup]:
        groups: Dict[str, _ValueGroup] = {}
        for fact in facts:
            key = fact.value.canonical()
            groups.setdefault(key, _ValueGroup(canonical=key)).facts.append(fact)

        for group in groups.values():
            boost = min(self.max_repetition_boost, self.repetition_boost * (len(group.facts) - 1))
            group.score = min(1.0, group.best_fact.confidence + boost)
        return list(groups.values())
