"""CSV source handling: one row, one detected event."""

import csv
import io
from typing import List, Tuple

from show_import.models.import_models import Fact, TextChunk
from show_import.services.extraction.field_aliases import map_row
from show_import.services.extraction.pattern_extractor import build_facts
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

CSV_FIELD_CONFIDENCE = 0.9


def extract_row_facts(source_id: str, csv_text: str, file_name: str = "") -> List[Tuple[int, List[Fact]]]:
    """Parse CSV text and return the facts of each non-empty row.

    Each row is treated as its own chunk (``chunk_index`` = row number), so
    every row resolves into a separate candidate.

    Args:
        source_id: Owning source
        csv_text: Raw CSV text with a header row
        file_name: Source file name, kept on the row chunks

    Returns:
        ``(row_number, facts)`` pairs, one per row that mapped to at least
        one field. Skipped rows leave gaps in the numbering.
    """
    reader = csv.DictReader(io.StringIO(csv_text))
    rows: List[Tuple[int, List[Fact]]] = []

    try:
        for row_number, row in enumerate(reader):
            mapped = map_row(row)
            if not mapped:
                continue
            chunk = TextChunk(
                source_id=source_id,
                text=", ".join(f"{k}: {v}" for k, v in row.items() if k and v),
                chunk_index=row_number,
                file_name=file_name,
            )
            facts = build_facts(
                chunk,
                [(fact_type, value, CSV_FIELD_CONFIDENCE) for fact_type, value in mapped.items()],
                prefix="csv",
                origin="csv",
            )
            if facts:
                rows.append((row_number, facts))
    except csv.Error as e:
        LOGGER.warning(
            f"Stopped reading CSV source {source_id} at line {reader.line_num}: {e}",
            extra={"source_id": source_id},
        )

    LOGGER.info(
        f"Mapped {len(rows)} CSV rows to candidates",
        extra={"source_id": source_id, "file_name": file_name},
    )
    return rows
