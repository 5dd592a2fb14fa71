"""Tests for OCR mistake correction and text similarity."""

import pytest

from dsn_ocr.patterns.corrections import (
    CHARACTER_CONFUSIONS,
    OcrCorrector,
    correct_ocr_mistakes,
    is_similar_text,
)


class TestOcrCorrections:
    """Test deterministic correction rules."""

    def test_product_prefix(self):
        assert correct_ocr_mistakes("gog46k123456789") == "G0G46K123456789"

    def test_product_prefix_with_q(self):
        assert correct_ocr_mistakes("GQG348025246123") == "G0G348025246123"

    def test_numeric_tail_letters(self):
        assert correct_ocr_mistakes("G0G46K12345S789") == "G0G46K123455789"
        assert correct_ocr_mistakes("G0G4NUOI5166123") == "G0G4NU015166123"

    def test_dashed_groups(self):
        assert correct_ocr_mistakes("12-3O-56-78") == "12-30-56-78"
        assert correct_ocr_mistakes("12-34-O6-78") == "12-34-06-78"

    def test_leading_letter_zero_letter(self):
        assert correct_ocr_mistakes("XOY123") == "X0Y123"

    def test_words_without_digits_untouched(self):
        assert correct_ocr_mistakes("HOME") == "HOME"
        assert correct_ocr_mistakes("CONTROLLER") == "CONTROLLER"

    @pytest.mark.parametrize("text", ["CONTROLLER123456", "CONTROL-123456"])
    def test_type_keywords_untouched(self, text):
        assert correct_ocr_mistakes(text) == text

    def test_clean_text_unchanged(self):
        assert correct_ocr_mistakes("CTRL-123456") == "CTRL-123456"

    def test_empty(self):
        assert correct_ocr_mistakes("") == ""

    @pytest.mark.parametrize("text", [
        "GOG46K1234S678O",
        "12-3O-O6-78",
        "XOY123",
        "BAT_0O1234",
    ])
    def test_fixed_point(self, text):
        once = correct_ocr_mistakes(text)
        assert correct_ocr_mistakes(once) == once

    def test_trace_reports_rules(self):
        corrector = OcrCorrector()
        corrected, applied = corrector.correct_with_trace("GOG46K123456789")

        assert corrected == "G0G46K123456789"
        assert applied == ["product_prefix_zero"]

    def test_trace_empty_when_nothing_applies(self):
        corrected, applied = OcrCorrector().correct_with_trace("CTRL-123456")

        assert corrected == "CTRL-123456"
        assert applied == []


class TestConfusionTable:
    """Test that the confusion table is a tunable parameter."""

    def test_default_table(self):
        assert CHARACTER_CONFUSIONS["O"] == "0"
        assert CHARACTER_CONFUSIONS["I"] == "1"
        assert CHARACTER_CONFUSIONS["S"] == "5"

    def test_fold(self):
        assert OcrCorrector().fold("BOSS") == "8055"

    def test_custom_table_limits_tail_corrections(self):
        corrector = OcrCorrector({"O": "0"})

        assert corrector.correct("G0G46K1234567O8") == "G0G46K123456708"
        assert corrector.correct("G0G46K12345678S") == "G0G46K12345678S"


class TestSimilarity:
    """Test cross-frame similarity used for grouping."""

    def test_case_and_whitespace(self):
        assert is_similar_text("abc", " ABC ")

    def test_equal_after_correction(self):
        assert is_similar_text("G0G46K123456789", "GOG46K123456789")

    def test_equal_after_folding(self):
        assert is_similar_text("SN-BOX", "5N-80X")

    def test_single_character_difference(self):
        assert is_similar_text("G0G46K123456789", "G0G46K123456788")

    def test_unrelated(self):
        assert not is_similar_text("G0G46K123456789", "XYZ-RANDOM")

    def test_empty_never_similar(self):
        assert not is_similar_text("", "")
        assert not is_similar_text("ABC", "")

    def test_levenshtein_threshold(self):
        first, second = "ACEFHJKMNP", "ACEFHJKMXY"

        assert is_similar_text(first, second, threshold=0.75)
        assert not is_similar_text(first, second, threshold=0.85)
