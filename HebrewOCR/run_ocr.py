"""
run_ocr.py

Command-line front end: run OCR on a PDF or image and print or save
the extracted Hebrew text.

Usage:
    python -m HebrewOCR.run_ocr <file_path>
    python -m HebrewOCR.run_ocr <file_path> --strategy chunked
    python -m HebrewOCR.run_ocr <file_path> --column-mode force_columns
    python -m HebrewOCR.run_ocr <file_path> --json
    python -m HebrewOCR.run_ocr <file_path> --output results/
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

from tqdm import tqdm

from HebrewOCR.context import CancellationToken, ProcessingCancelled, ProcessingObserver
from HebrewOCR.engine import OCREngineError
from HebrewOCR.ocr_pipeline import process_document
from HebrewOCR.schemas import ColumnMode, StrategyTag
from HebrewOCR.utils import OCRFileError, OCRSecurityError, format_time, output_path_for

logger = logging.getLogger(__name__)


class ProgressBarObserver(ProcessingObserver):
    """Feeds processing notifications into a tqdm progress bar."""

    def __init__(self, description: str):
        self.bar = tqdm(total=100, desc=description, unit="%")
        self._last = 0.0

    def on_progress(self, percent: float) -> None:
        if percent > self._last:
            self.bar.update(percent - self._last)
            self._last = percent

    def on_stats_update(self, stats) -> None:
        if stats.total_pages:
            self.bar.set_postfix(
                pages=f"{stats.completed_pages}/{stats.total_pages}",
                eta=format_time(stats.estimated_time_remaining),
            )

    def on_memory_update(self, mb: float) -> None:
        logger.debug("Estimated memory: %.1fMB", mb)

    def close(self) -> None:
        self.bar.close()


def main():
    parser = argparse.ArgumentParser(
        description="Extract Hebrew text from scanned PDFs and images using OCR"
    )
    parser.add_argument(
        "file_path",
        help="Path to the PDF or image file to process",
    )
    parser.add_argument(
        "--strategy",
        default="auto",
        choices=["auto"] + [tag.value for tag in StrategyTag],
        help="Scheduling strategy (default: chosen from page count)",
    )
    parser.add_argument(
        "--column-mode",
        default=ColumnMode.AUTO.value,
        choices=[ColumnMode.AUTO.value, ColumnMode.SINGLE.value, ColumnMode.FORCE_COLUMNS.value],
        help="Two-column (sefer) layout handling",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output full structured result as JSON",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write text to this file, or to <name>_extracted_text.txt inside this directory",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)-8s | %(message)s",
    )

    if not Path(args.file_path).exists():
        print(f"Error: File not found: {args.file_path}", file=sys.stderr)
        sys.exit(1)

    token = CancellationToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())

    observer = ProgressBarObserver(Path(args.file_path).name)
    try:
        result = process_document(
            args.file_path,
            strategy_mode=args.strategy,
            column_mode=args.column_mode,
            observer=observer,
            cancel_token=token,
        )
    except ProcessingCancelled:
        print("Cancelled.", file=sys.stderr)
        sys.exit(130)
    except (OCRFileError, OCRSecurityError, OCREngineError) as e:
        print(f"Error processing file: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        observer.close()
        signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(f"File: {result.file_path}")
        print(f"Pages: {result.total_pages}")
        if result.strategy:
            print(f"Strategy: {result.strategy.value}")
        print(f"Confidence: {result.overall_confidence:.2%}")
        print(f"Time: {format_time(result.elapsed_seconds)}")
        print("---")
        print(result.text)

    if args.output:
        target = Path(args.output)
        if target.is_dir():
            target = output_path_for(args.file_path, target)
        target.write_text(result.text, encoding="utf-8")
        print(f"Saved text to {target}", file=sys.stderr)


if __name__ == "__main__":
    main()
