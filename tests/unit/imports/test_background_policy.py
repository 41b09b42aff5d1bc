"""Unit tests for background dispatch, low-text and document category rules."""

import pytest

from show_import.models.import_models import DocumentCategory
from show_import.services.imports.background_policy import (
    LOW_TEXT_WARNING_CODE,
    infer_document_category,
    is_low_text,
    low_text_warnings,
    resolve_mime_type,
    should_background,
)


class TestShouldBackground:
    def test_small_import_runs_inline(self, make_source):
        assert should_background([make_source("Show: Summer Fest"), make_source("Venue: MSG")]) is False

    def test_more_sources_than_threshold(self, make_source):
        sources = [make_source("a"), make_source("b"), make_source("c")]

        assert should_background(sources, source_threshold=2) is True

    def test_word_count_over_threshold(self, make_source):
        assert should_background([make_source("word " * 50)], word_threshold=40) is True

    def test_force(self, make_source):
        assert should_background([make_source("a")], force=True) is True


class TestLowText:
    @pytest.mark.parametrize(
        "word_count,page_count,flagged,expected",
        [
            (0, None, False, True),
            (150, None, False, True),
            (500, 2, False, False),
            (500, 40, False, True),
            (500, None, True, True),
        ],
    )
    def test_is_low_text(self, word_count, page_count, flagged, expected):
        assert is_low_text(word_count, page_count, flagged) is expected

    def test_one_warning_for_all_thin_documents(self, make_source):
        sources = [
            make_source("", file_name="scan.pdf", mime_type="application/pdf"),
            make_source("", file_name="photo.jpg", mime_type="image/jpeg"),
            make_source("word " * 500, file_name="contract.pdf", mime_type="application/pdf", page_count=2),
        ]

        warnings = low_text_warnings(sources)

        assert len(warnings) == 1
        assert warnings[0].code == LOW_TEXT_WARNING_CODE
        assert warnings[0].sources == ["scan.pdf", "photo.jpg"]

    def test_pasted_text_never_warns(self, make_source):
        assert low_text_warnings([make_source("short"), make_source("x", mime_type="text/plain")]) == []


class TestInferDocumentCategory:
    @pytest.mark.parametrize(
        "file_name,expected",
        [
            ("Tech_Rider_2025.pdf", DocumentCategory.RIDER),
            ("Performance Agreement.pdf", DocumentCategory.CONTRACT),
            ("passport-scan.jpg", DocumentCategory.VISA),
            ("boarding_pass_LHR.pdf", DocumentCategory.BOARDING_PASS),
            ("stage_plot.png", DocumentCategory.OTHER),
        ],
    )
    def test_categories(self, file_name, expected):
        assert infer_document_category(file_name) == expected


class TestResolveMimeType:
    @pytest.mark.parametrize(
        "file_name,declared,pasted,expected",
        [
            ("scan.pdf", None, False, "application/pdf"),
            ("scan.pdf", "Application/PDF", False, "application/pdf"),
            ("photo.jpg", None, False, "image/jpeg"),
            ("upload", None, False, "application/octet-stream"),
            ("notes.txt", None, False, "text/plain"),
            ("pasted", None, True, "text/plain"),
            ("shows.csv", None, True, "text/csv"),
            ("advance.pdf", None, True, "text/plain"),
        ],
    )
    def test_resolution(self, file_name, declared, pasted, expected):
        assert resolve_mime_type(file_name, declared, pasted=pasted) == expected
