"""Rules for background dispatch, low-text detection, upload types and document categories."""

import mimetypes
from typing import List, Optional, Sequence

from show_import.models.import_models import DocumentCategory, ImportWarning, RawSource

LOW_TEXT_WARNING_CODE = "LOW_TEXT"
LOW_TEXT_WARNING_MESSAGE = (
    "Insufficient text extracted from one or more documents (likely scanned/image-based PDF). "
    "Manual review or OCR required."
)

PASTED_TEXT_MIME_TYPE = "text/plain"
UNKNOWN_UPLOAD_MIME_TYPE = "application/octet-stream"


def should_background(
    sources: Sequence[RawSource],
    force: bool = False,
    source_threshold: int = 2,
    word_threshold: int = 20000,
) -> bool:
    """Large imports go to the background worker instead of blocking the request.

    Args:
        sources: Sources of the import
        force: Caller asked for background execution
        source_threshold: Background when there are more sources than this
        word_threshold: Background when the total word count exceeds this
    """
    if force:
        return True
    if len(sources) > source_threshold:
        return True
    return sum(s.word_count for s in sources) > word_threshold


def is_low_text(
    word_count: int,
    page_count: Optional[int] = None,
    flagged: bool = False,
    min_words: int = 200,
    min_words_per_page: int = 30,
) -> bool:
    """Whether an extracted document is too thin to trust."""
    if flagged or word_count <= 0:
        return True
    if word_count < min_words:
        return True
    if page_count and word_count / page_count < min_words_per_page:
        return True
    return False


def low_text_warnings(
    sources: Sequence[RawSource],
    min_words: int = 200,
    min_words_per_page: int = 30,
) -> List[ImportWarning]:
    """One LOW_TEXT warning naming every non-text document that came back thin.

    Pasted text and email bodies are not documents and never warn.
    """
    thin = [
        s.file_name
        for s in sources
        if not s.is_text_mime
        and is_low_text(s.word_count, s.page_count, s.is_low_text, min_words, min_words_per_page)
    ]
    if not thin:
        return []
    return [ImportWarning(code=LOW_TEXT_WARNING_CODE, message=LOW_TEXT_WARNING_MESSAGE, sources=thin)]


def resolve_mime_type(file_name: str, declared: Optional[str] = None, pasted: bool = False) -> str:
    """Mime type to record for a source.

    A declared type wins. Otherwise the type is guessed from the file name.
    Pasted text stays ``text/*``, and uploaded bytes nobody can name are kept
    as an ``application/octet-stream`` document.
    """
    if declared:
        return declared.strip().lower()
    guessed, _ = mimetypes.guess_type(file_name or "")
    if pasted:
        return guessed if guessed and guessed.startswith("text/") else PASTED_TEXT_MIME_TYPE
    return guessed or UNKNOWN_UPLOAD_MIME_TYPE


def infer_document_category(file_name: str) -> DocumentCategory:
    lowered = (file_name or "").lower()
    if "rider" in lowered:
        return DocumentCategory.RIDER
    if "contract" in lowered or "agreement" in lowered:
        return DocumentCategory.CONTRACT
    if "visa" in lowered or "passport" in lowered:
        return DocumentCategory.VISA
    if "boarding" in lowered and "pass" in lowered:
        return DocumentCategory.BOARDING_PASS
    return DocumentCategory.OTHER
