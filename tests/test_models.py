"""Tests for SubtitleBlock model."""

import pytest
from subtitle_translator.models import SubtitleBlock, BlockConfidence


class TestSubtitleBlock:

    def test_creation(self):
        block = SubtitleBlock(1, "00:00:01,000 --> 00:00:03,500", ["Hello world"])
        assert block.id == 1
        assert block.lines == ["Hello world"]
        assert block.confidence_score == 1.0

    def test_text_joins_lines(self):
        block = SubtitleBlock(1, "00:00:01,000 --> 00:00:03,500", ["Line one", "Line two"])
        assert block.text == "Line one\nLine two"
        assert block.char_count == len("Line one\nLine two")

    def test_confidence_level(self):
        block = SubtitleBlock(1, "t", ["x"], confidence_score=0.6)
        assert block.confidence_level == "medium"

    def test_to_srt(self):
        block = SubtitleBlock(3, "00:00:01,000 --> 00:00:03,500", ["Hello", "there"])
        assert block.to_srt() == "3\n00:00:01,000 --> 00:00:03,500\nHello\nthere\n"

    def test_to_srt_skips_blank_lines(self):
        block = SubtitleBlock(3, "00:00:01,000 --> 00:00:03,500", ["Hello", ""])
        assert block.to_srt() == "3\n00:00:01,000 --> 00:00:03,500\nHello\n"

    def test_to_srt_block_without_text(self):
        block = SubtitleBlock(3, "00:00:01,000 --> 00:00:03,500", ["", ""])
        assert block.to_srt() == "3\n00:00:01,000 --> 00:00:03,500\n \n"

    def test_copy(self):
        block = SubtitleBlock(1, "00:00:01,000 --> 00:00:03,500", ["Hello"])
        copied = block.copy(lines=["Hola"], confidence_score=0.9)

        # Original unchanged
        assert block.lines == ["Hello"]
        assert block.confidence_score == 1.0

        assert copied.lines == ["Hola"]
        assert copied.confidence_score == 0.9
        assert copied.time_code == block.time_code

    def test_copy_does_not_share_lines(self):
        block = SubtitleBlock(1, "t", ["Hello"])
        copied = block.copy()
        copied.lines.append("extra")
        assert block.lines == ["Hello"]


class TestBlockConfidence:

    def test_from_block(self):
        block = SubtitleBlock(7, "t", ["x"], confidence_score=0.3)
        conf = BlockConfidence.from_block(block)
        assert conf.id == 7
        assert conf.confidence_level == "low"

    def test_dict_shape(self):
        conf = BlockConfidence(2, 0.85, "high")
        data = conf.to_dict()
        assert data == {"id": 2, "confidenceScore": 0.85, "confidenceLevel": "high"}
        assert BlockConfidence.from_dict(data) == conf

    def test_from_dict_derives_missing_level(self):
        conf = BlockConfidence.from_dict({"id": 1, "confidenceScore": 0.55})
        assert conf.confidence_level == "medium"
