"""Tests for confidence scoring."""

import pytest
from subtitle_translator.confidence import (
    calculate_confidence,
    confidence_level,
    average_confidence,
)
from subtitle_translator.models import SubtitleBlock


class TestCalculateConfidence:

    def test_null_sentinel(self):
        assert calculate_confidence(None, "text") == 0.5
        assert calculate_confidence("text", None) == 0.5
        assert calculate_confidence(None, None) == 0.5

    def test_both_empty(self):
        assert calculate_confidence("", "") > 0.9

    def test_empty_translation_is_low(self):
        assert calculate_confidence("Hello there", "") < 0.5

    def test_empty_original_is_penalized(self):
        assert calculate_confidence("", "Hola") == pytest.approx(0.55)

    def test_high_confidence_example(self):
        score = calculate_confidence(
            "This is a simple text that should be easy to translate.",
            "Este es un texto simple que debería ser fácil de traducir.",
        )
        assert score >= 0.8

    def test_length_ratio_penalty(self):
        # ratio 1.0 -> penalty min(0.5, 0.7 * 2)
        score = calculate_confidence("abcdefghij", "abcdefghijabcdefghij")
        assert score == pytest.approx(0.55)

    def test_repeated_words(self):
        clean = calculate_confidence("one two three four", "uno dos tres cuatro")
        repeated = calculate_confidence("one two three four", "uno uno tres cuatro")
        assert repeated < clean

    def test_repeated_words_case_insensitive(self):
        score = calculate_confidence("hello my friend", "hola Hola amigo")
        # one repeated pair -> 0.07
        assert score == pytest.approx(0.98)

    def test_excessive_punctuation(self):
        score = calculate_confidence("What?!", "Que???")
        assert score == pytest.approx(0.95)

    def test_suspicious_characters(self):
        score = calculate_confidence("a b c d e", "[a] {b}")
        # 4 suspicious chars -> 0.2 penalty
        assert score == pytest.approx(0.85)

    def test_all_caps_words(self):
        score = calculate_confidence("Hello NASA and FBI", "Hola NASA y FBI!")
        # 2 caps words -> 0.06
        assert score == pytest.approx(0.99)

    def test_each_penalty_capped(self):
        score = calculate_confidence("x" * 30, "<" * 30)
        # suspicious capped at 0.5
        assert score == pytest.approx(0.55)

    @pytest.mark.parametrize("original,translated", [
        ("", "!!!!!! [[[[ ]]]] AAA BBB CCC"),
        ("short", "word word word word word word word word"),
        ("Hello", "Hello"),
        ("a" * 100, "b"),
        ("normal text", "<<<>>>{{{}}}|||^^^~~~\\\\\\ ?????? !!!!!!"),
    ])
    def test_bounds(self, original, translated):
        score = calculate_confidence(original, translated)
        assert 0.0 <= score <= 1.0


class TestConfidenceLevel:

    @pytest.mark.parametrize("score,level", [
        (1.0, "high"),
        (0.8, "high"),
        (0.79, "medium"),
        (0.5, "medium"),
        (0.49, "low"),
        (0.0, "low"),
    ])
    def test_thresholds(self, score, level):
        assert confidence_level(score) == level


class TestAverageConfidence:

    def test_empty_is_full(self):
        assert average_confidence([]) == 1.0

    def test_mean(self):
        blocks = [
            SubtitleBlock(1, "t", ["a"], confidence_score=1.0),
            SubtitleBlock(2, "t", ["b"], confidence_score=0.5),
        ]
        assert average_confidence(blocks) == pytest.approx(0.75)
