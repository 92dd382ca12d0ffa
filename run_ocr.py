"""
Extract Hebrew text from a scanned PDF or image and save it next to
the input as <name>_extracted_text.txt.

Usage:
    python run_ocr.py path/to/sefer.pdf [strategy]

For progress bars, JSON output and column options use
`python -m HebrewOCR.run_ocr` instead.
"""

import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from HebrewOCR.ocr_pipeline import process_document
from HebrewOCR.utils import format_time, output_path_for


def main():
    if len(sys.argv) < 2:
        print("Usage: python run_ocr.py <file_path> [auto|parallel|batch|chunked|progressive]")
        print("Example: python run_ocr.py sefer.pdf chunked")
        sys.exit(1)

    file_path = sys.argv[1]
    strategy = sys.argv[2] if len(sys.argv) > 2 else "auto"

    if not os.path.exists(file_path):
        print(f"Error: File not found: {file_path}")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    result = process_document(file_path, strategy_mode=strategy)

    target = output_path_for(file_path)
    target.write_text(result.text, encoding="utf-8")

    errors = sum(1 for page in result.pages if page.has_errors)
    print(f"Pages: {result.total_pages} ({errors} with errors)")
    print(f"Confidence: {result.overall_confidence:.0%}")
    print(f"Time: {format_time(result.elapsed_seconds)}")
    print(f"Saved: {target}")


if __name__ == "__main__":
    main()
