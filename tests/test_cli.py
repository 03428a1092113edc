"""Tests for the command-line interface."""

import asyncio
import tempfile
from pathlib import Path

import pytest
from tqdm import tqdm

from subtitle_translator import cli
from subtitle_translator.progress import Phase, ProgressTracker

SRT = "1\n00:00:01,000 --> 00:00:02,000\nHello there\n"


class EchoProvider:

    async def translate(self, text, target_lang, source_lang=None, options=None):
        return text


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DEEPL_API_KEY", "OPENAI_API_KEY", "SUBTITLE_HISTORY_DIR"):
        monkeypatch.delenv(name, raising=False)


class TestParseArguments:

    def test_defaults(self):
        args = cli.parse_arguments(["in.srt", "-t", "ES"])
        assert args.input_path == "in.srt"
        assert args.output_path is None
        assert args.source_lang == "auto"
        assert args.provider == "deepl"
        assert args.formality == "default"
        assert args.group_size is None

    def test_options(self):
        args = cli.parse_arguments([
            "in.srt", "out.srt", "-t", "DE", "-s", "EN",
            "--formality", "more", "--group-size", "10", "--interval", "0.5",
            "--no-split-sentences",
        ])
        assert args.output_path == "out.srt"
        assert args.formality == "more"
        assert args.group_size == 10
        assert args.interval == 0.5
        assert args.no_split_sentences is True

    def test_target_required(self):
        with pytest.raises(SystemExit):
            cli.parse_arguments(["in.srt"])

    def test_detect_language_needs_no_target(self):
        args = cli.parse_arguments(["in.srt", "--detect-language"])
        assert args.detect_language is True
        assert args.target_lang is None


class TestWatchProgress:

    def test_stops_on_terminal_phase(self):
        tracker = ProgressTracker()
        sid = tracker.start_tracking(40)
        tracker.update_progress(sid, Phase.TRANSLATING, "x", 10)
        tracker.complete_tracking(sid, True)

        with tqdm(total=1, disable=True) as bar:
            asyncio.run(cli.watch_progress(tracker, sid, bar))
            assert bar.total == 40
            assert bar.n == 40

    def test_unknown_session(self):
        with tqdm(total=1, disable=True) as bar:
            asyncio.run(cli.watch_progress(ProgressTracker(), "missing", bar))


class TestMainAsync:

    def write_srt(self, tmpdir, content=SRT):
        path = Path(tmpdir) / "movie.srt"
        path.write_text(content, encoding="utf-8")
        return path

    def test_missing_api_key(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            in_path = self.write_srt(tmpdir)
            args = cli.parse_arguments([str(in_path), "-t", "ES"])
            assert asyncio.run(cli.main_async(args)) == 1
            assert not (Path(tmpdir) / "translated_movie.srt").exists()

    def test_missing_file(self):
        args = cli.parse_arguments(["/nonexistent/in.srt", "-t", "ES", "--api-key", "key"])
        assert asyncio.run(cli.main_async(args)) == 1

    def test_detect_language_needs_no_key(self, capsys):
        content = (
            "1\n00:00:01,000 --> 00:00:03,000\n"
            "Thank you very much for coming to the meeting this morning.\n"
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            in_path = self.write_srt(tmpdir, content)
            args = cli.parse_arguments([str(in_path), "--detect-language"])

            assert asyncio.run(cli.main_async(args)) == 0
            assert capsys.readouterr().out.startswith("en (")

    def test_detect_language_without_text(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            in_path = self.write_srt(tmpdir, "1\n00:00:01,000 --> 00:00:02,000\n12345\n")
            args = cli.parse_arguments([str(in_path), "--detect-language"])
            assert asyncio.run(cli.main_async(args)) == 1

    def test_writes_translated_file(self, monkeypatch):
        monkeypatch.setattr(cli, "create_provider", lambda config: EchoProvider())

        with tempfile.TemporaryDirectory() as tmpdir:
            in_path = self.write_srt(tmpdir)
            args = cli.parse_arguments([str(in_path), "-t", "ES", "--api-key", "key", "--interval", "0"])

            assert asyncio.run(cli.main_async(args)) == 0

            out_path = Path(tmpdir) / "translated_movie.srt"
            assert out_path.read_text(encoding="utf-8") == SRT
