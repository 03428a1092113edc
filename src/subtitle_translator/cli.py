"""Command-line interface for the subtitle translator."""

from __future__ import annotations

import asyncio
import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from .config import TranslatorConfig, FORMALITY_LEVELS, SUPPORTED_PROVIDERS
from .detection import detect_language
from .exceptions import TranslationError
from .parser import load_srt, validate_srt_file
from .progress import ProgressTracker
from .service import TranslationService, create_provider

POLL_INTERVAL = 0.2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Structure-preserving SRT subtitle translator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s video.srt -t ES                    # Translate to Spanish (DeepL)
  %(prog)s video.srt out.srt -t DE -s EN      # Explicit source and output
  %(prog)s video.srt -t FR --formality more   # Formal register
  %(prog)s video.srt -t IT --provider openai  # Use an OpenAI-compatible model
        """
    )

    # Positional arguments
    parser.add_argument("input_path", help="Input SRT file path")
    parser.add_argument("output_path", nargs='?', default=None, help="Output SRT file path")

    # Languages
    parser.add_argument("-t", "--target", dest="target_lang", help="Target language code")
    parser.add_argument("-s", "--source", dest="source_lang", default="auto",
                        help="Source language code (default: auto-detect)")

    # Provider options
    parser.add_argument("--provider", choices=SUPPORTED_PROVIDERS, default="deepl")
    parser.add_argument("--api-key", help="API key (or set DEEPL_API_KEY / OPENAI_API_KEY)")
    parser.add_argument("--api-url", help="Provider base URL")
    parser.add_argument("--model", dest="model_name", default="gpt-4o-mini", help="Model for --provider openai")
    parser.add_argument("--formality", choices=FORMALITY_LEVELS, default="default")
    parser.add_argument("--glossary-id", help="DeepL glossary id")
    parser.add_argument("--no-tag-handling", action="store_true", help="Disable XML tag handling")
    parser.add_argument("--no-preserve-formatting", action="store_true")
    parser.add_argument("--no-split-sentences", action="store_true")

    # Pacing
    parser.add_argument("--group-size", type=int, default=None, help="Blocks per provider request (default 5)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between requests (default 1.0)")
    parser.add_argument("--timeout", type=float, default=None, help="Abort the translation after this many seconds")

    # Format check and history
    parser.add_argument("--max-chars", dest="max_chars_per_line", type=int, default=40)
    parser.add_argument("--history-dir", help="Directory for cached translations")

    # Misc
    parser.add_argument("--detect-language", action="store_true",
                        help="Print the detected source language and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    args = parser.parse_args(argv)
    if not args.target_lang and not args.detect_language:
        parser.error("the following arguments are required: -t/--target")
    return args


async def watch_progress(tracker: ProgressTracker, session_id: str, bar: tqdm) -> None:
    """Mirror a progress session onto a tqdm bar until it finishes."""
    while True:
        state = tracker.get_progress(session_id)
        if state is None:
            return
        bar.total = max(state.total_chars, 1)
        bar.n = state.translated_chars
        bar.set_postfix_str(state.phase.value)
        bar.refresh()
        if state.phase.is_terminal:
            return
        await asyncio.sleep(POLL_INTERVAL)


async def main_async(args: argparse.Namespace) -> int:
    """Main async workflow."""
    logger = logging.getLogger(__name__)
    config = TranslatorConfig.from_args(args)

    in_path = Path(args.input_path).expanduser().resolve()
    error = validate_srt_file(in_path)
    if error:
        logger.error(error)
        return 1

    logger.info(f"Reading: {in_path}")
    content = load_srt(in_path)

    if args.detect_language:
        detection = detect_language(content)
        if not detection.success:
            logger.error(detection.message)
            return 1
        print(f"{detection.language} ({detection.confidence:.2f})")
        return 0

    error = config.validate()
    if error:
        logger.error(error)
        return 1

    service = TranslationService(create_provider(config), config=config)
    try:
        try:
            session_id = service.start_session(content)
        except TranslationError as e:
            logger.error(str(e))
            return 1

        with tqdm(total=1, desc="Translating", unit="char") as bar:
            watcher = asyncio.create_task(watch_progress(service.tracker, session_id, bar))
            try:
                outcome = await service.translate_document(
                    content,
                    args.target_lang,
                    args.source_lang,
                    session_id=session_id,
                    file_name=in_path.name,
                )
            except TranslationError as e:
                logger.error(str(e))
                return 1
            finally:
                await watcher
    finally:
        await service.close()

    for warning in outcome.warnings:
        logger.warning(warning)

    if args.output_path:
        out_path = Path(args.output_path)
    else:
        out_path = in_path.with_name(f"{config.output_prefix}{in_path.name}")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(outcome.translated_content, encoding="utf-8")

    source = "history" if outcome.cached else "provider"
    logger.info(
        f"Done! {len(outcome.confidence)} blocks from {source}, "
        f"average confidence {outcome.average_confidence:.2f} ({outcome.confidence_level}). "
        f"Saved to {out_path}"
    )
    return 0


def main() -> None:
    """CLI entry point."""
    args = parse_arguments()
    setup_logging(args.verbose)

    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(130)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
