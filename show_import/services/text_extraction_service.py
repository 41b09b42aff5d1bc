"""Plain-text extraction from uploaded file payloads.

PDFs are read with pdfplumber; ``text/*`` payloads are decoded as UTF-8.
Extraction never raises: a failure yields empty text and an error string, and
the caller's low-text and documents-only handling takes it from there.
"""

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple

import pdfplumber

from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_MIME_TYPES = {"application/pdf", "application/x-pdf"}


@dataclass
class TextExtractionResult:
    text: str = ""
    page_count: Optional[int] = None
    word_count: int = 0
    is_low_text: bool = False
    error: Optional[str] = None


class TextExtractionService:
    """Extracts plain text from file bytes given a declared mime type."""

    async def extract(
        self, data: bytes, mime_type: Optional[str], file_name: str = ""
    ) -> TextExtractionResult:
        """Extract text from a file payload.

        Args:
            data: Raw file bytes
            mime_type: Declared mime type
            file_name: File name, used when the mime type is missing

        Returns:
            TextExtractionResult; ``error`` is set when extraction failed
        """
        mime = (mime_type or "").lower()
        try:
            if mime in PDF_MIME_TYPES or file_name.lower().endswith(".pdf"):
                text, page_count = await asyncio.to_thread(self._extract_pdf, data)
            elif mime.startswith("text/") or not mime:
                text, page_count = data.decode("utf-8", errors="replace"), None
            else:
                LOGGER.info(
                    f"No text extractor for {mime}, keeping {file_name} as a document",
                    extra={"file_name": file_name, "mime_type": mime},
                )
                return TextExtractionResult(is_low_text=True)
        except Exception as e:
            LOGGER.warning(
                f"Text extraction failed for {file_name}: {e}",
                exc_info=True,
                extra={"file_name": file_name, "mime_type": mime},
            )
            return TextExtractionResult(is_low_text=True, error=str(e))

        word_count = len(text.split())
        LOGGER.info(
            f"Extracted {word_count} words from {file_name}",
            extra={"file_name": file_name, "page_count": page_count},
        )
        return TextExtractionResult(
            text=text,
            page_count=page_count,
            word_count=word_count,
            is_low_text=word_count == 0,
        )

    @staticmethod
    def _extract_pdf(data: bytes) -> Tuple[str, int]:
        pages: List[str] = []
        with pdfplumber.open(BytesIO(data)) as pdf:
            for page in pdf.pages:
                pages.append(page.extract_text() or "")
            return "\n\n".join(pages), len(pdf.pages)
