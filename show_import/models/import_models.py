"""Domain models for the import pipeline.

Sources, chunks and facts are plain dataclasses passed between the pipeline
stages. Only the job record (``show_import.database.models.ImportJob``) is
persisted; candidates are serialized into it with ``to_dict``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ImportStatus(str, Enum):
    """Import job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


RETRYABLE_STATUSES = frozenset(
    {ImportStatus.PENDING, ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.NEEDS_REVIEW}
)


class ExtractionMode(str, Enum):
    HEURISTIC = "heuristic"
    AI_ASSISTED = "ai_assisted"


class ProgressStage(str, Enum):
    QUEUED = "queued"
    EXTRACTING_FACTS = "extracting_facts"
    RESOLVING = "resolving"
    MATCHING_DUPLICATES = "matching_duplicates"
    COMPLETED = "completed"
    FAILED = "failed"


class FactType(str, Enum):
    """Kinds of observations the extractor can emit."""

    EVENT_TITLE = "event_title"
    ARTIST = "artist"
    DATE = "date"
    CITY = "city"
    STATE = "state"
    COUNTRY = "country"
    VENUE_NAME = "venue_name"
    ADDRESS = "address"
    CAPACITY = "capacity"
    SET_TIME = "set_time"
    DOOR_TIME = "door_time"
    SHOW_TIME = "show_time"
    SOUNDCHECK_TIME = "soundcheck_time"
    GUARANTEE = "guarantee"
    FEE = "fee"
    CONTACT_NAME = "contact_name"
    CONTACT_EMAIL = "contact_email"
    CONTACT_PHONE = "contact_phone"
    NOTES = "notes"


class ResolutionState(str, Enum):
    UNRESOLVED = "unresolved"
    AMBIGUOUS = "ambiguous"
    RESOLVED = "resolved"


class DocumentCategory(str, Enum):
    RIDER = "rider"
    CONTRACT = "contract"
    VISA = "visa"
    BOARDING_PASS = "boarding_pass"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Fact payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextValue:
    text: str
    kind: str = field(default="text", init=False)

    def canonical(self) -> str:
        return " ".join(self.text.lower().split()).strip(" .,;:")

    def display(self) -> str:
        return self.text


@dataclass(frozen=True)
class DateValue:
    """Calendar date as ISO ``YYYY-MM-DD``."""

    iso: str
    kind: str = field(default="date", init=False)

    def canonical(self) -> str:
        return self.iso

    def display(self) -> str:
        return self.iso


@dataclass(frozen=True)
class TimeValue:
    """Time of day as 24h ``HH:MM:SS``."""

    hhmmss: str
    kind: str = field(default="time", init=False)

    def canonical(self) -> str:
        return self.hhmmss

    def display(self) -> str:
        return self.hhmmss


@dataclass(frozen=True)
class MoneyValue:
    amount: float
    currency: str = "USD"
    kind: str = field(default="money", init=False)

    def canonical(self) -> str:
        return f"{self.currency}:{self.amount:.2f}"

    def display(self) -> str:
        return f"{self.amount:.2f} {self.currency}"


@dataclass(frozen=True)
class NumberValue:
    value: int
    kind: str = field(default="number", init=False)

    def canonical(self) -> str:
        return str(self.value)

    def display(self) -> str:
        return str(self.value)


FactValue = Union[TextValue, DateValue, TimeValue, MoneyValue, NumberValue]


def fact_value_to_dict(value: FactValue) -> Dict[str, Any]:
    if isinstance(value, MoneyValue):
        return {"kind": value.kind, "amount": value.amount, "currency": value.currency}
    return {"kind": value.kind, "value": value.display()}


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawSource:
    """One user-submitted input unit.

    Attributes:
        id: Stable source identifier
        file_name: Original file name, or a label for pasted text/email bodies
        mime_type: Declared mime type, if any
        size_bytes: Size of the uploaded payload
        raw_text: Extracted plain text (may be empty)
        page_count: Page count reported by the text extractor
        word_count: Whitespace-delimited word count of ``raw_text``
        is_low_text: Extractor flagged the text as too thin to trust
    """

    id: str
    file_name: str
    raw_text: str = ""
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    page_count: Optional[int] = None
    word_count: int = 0
    is_low_text: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "raw_text": self.raw_text,
            "page_count": self.page_count,
            "word_count": self.word_count,
            "is_low_text": self.is_low_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawSource":
        return cls(
            id=str(data["id"]),
            file_name=data.get("file_name") or "",
            raw_text=data.get("raw_text") or "",
            mime_type=data.get("mime_type"),
            size_bytes=data.get("size_bytes"),
            page_count=data.get("page_count"),
            word_count=int(data.get("word_count") or 0),
            is_low_text=bool(data.get("is_low_text")),
        )

    @property
    def has_text(self) -> bool:
        return bool(self.raw_text and self.raw_text.strip())

    @property
    def is_text_mime(self) -> bool:
        return self.mime_type is None or self.mime_type.startswith("text/")

    @property
    def is_csv(self) -> bool:
        return self.mime_type == "text/csv" or self.file_name.lower().endswith(".csv")


@dataclass(frozen=True)
class TextChunk:
    """A bounded slice of one source's normalized text.

    ``text[overlap_chars:]`` is the part owned by this chunk; the prefix
    repeats the tail of the previous chunk when overlap is enabled.
    """

    source_id: str
    text: str
    chunk_index: int
    file_name: str = ""
    start: int = 0
    overlap_chars: int = 0

    @property
    def own_text(self) -> str:
        return self.text[self.overlap_chars:]


@dataclass(frozen=True)
class Fact:
    """A single typed observation extracted from one chunk."""

    fact_id: str
    fact_type: FactType
    value: FactValue
    source_id: str
    chunk_index: int
    confidence: float
    raw_text: str = ""
    origin: str = "pattern"

    def __post_init__(self):
        if self.value is None:
            raise ValueError("Fact value cannot be None")
        # Frozen dataclass: clamp through object.__setattr__
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fact_id": self.fact_id,
            "fact_type": self.fact_type.value,
            "value": fact_value_to_dict(self.value),
            "source_id": self.source_id,
            "chunk_index": self.chunk_index,
            "confidence": self.confidence,
            "origin": self.origin,
        }


@dataclass
class Resolution:
    """Resolver bookkeeping for one field of a candidate."""

    fact_type: FactType
    state: ResolutionState
    selected_fact_id: Optional[str] = None
    confidence: float = 0.0
    alternatives: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fact_type": self.fact_type.value,
            "state": self.state.value,
            "selected_fact_id": self.selected_fact_id,
            "confidence": self.confidence,
            "alternatives": list(self.alternatives),
        }


@dataclass
class DuplicateMatch:
    matched_entity_id: str
    matched_entity_type: str  # show | venue
    similarity_score: float
    matched_fields: List[str] = field(default_factory=list)
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched_entity_id": self.matched_entity_id,
            "matched_entity_type": self.matched_entity_type,
            "similarity_score": self.similarity_score,
            "matched_fields": list(self.matched_fields),
            "label": self.label,
        }


@dataclass
class ImportCandidate:
    """One detected show/event assembled from resolved facts."""

    candidate_id: str
    title: Optional[str] = None
    date: Optional[str] = None
    city: Optional[str] = None
    venue_name: Optional[str] = None
    set_time: Optional[str] = None
    notes: Optional[str] = None
    structured: Dict[str, Any] = field(default_factory=dict)
    duplicates: List[DuplicateMatch] = field(default_factory=list)
    confidence_map: Dict[str, float] = field(default_factory=dict)
    resolutions: List[Resolution] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return any(r.state == ResolutionState.AMBIGUOUS for r in self.resolutions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "title": self.title,
            "date": self.date,
            "city": self.city,
            "venue_name": self.venue_name,
            "set_time": self.set_time,
            "notes": self.notes,
            "structured": dict(self.structured),
            "duplicates": [d.to_dict() for d in self.duplicates],
            "confidence_map": dict(self.confidence_map),
            "resolutions": [r.to_dict() for r in self.resolutions],
        }


@dataclass
class ResolutionResult:
    candidate: ImportCandidate
    resolutions: List[Resolution]


@dataclass
class StructuredExtraction:
    """Output of the AI-assisted full-text pass.

    Attributes:
        fields: Fact type to ``(value, confidence)`` for every field the model filled
        raw: The parsed model payload, kept for the reviewer
    """

    fields: Dict[FactType, tuple] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.fields


@dataclass
class ImportWarning:
    code: str
    message: str
    sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "sources": list(self.sources)}


@dataclass
class ImportedDocument:
    id: str
    file_name: str
    file_size: Optional[int]
    category: DocumentCategory

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "category": self.category.value,
        }
