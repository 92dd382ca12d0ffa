"""
postprocessor.py

Hebrew text validation applied to raw OCR output.

Scans of aged Hebrew books make the engine emit decorative-symbol
noise (stars, ornaments, stray Latin glyphs). Validation keeps only
words that carry Hebrew, strips foreign characters from them and
drops lines that end up empty.
"""

import logging
import re

logger = logging.getLogger(__name__)

HEBREW_BLOCK = re.compile(r"[\u0590-\u05FF]")
HEBREW_LETTERS = re.compile(r"[\u05D0-\u05EA]")

_ALLOWED_CHAR = re.compile(
    r"[\u05D0-\u05EA"  # letters
    r"\u05B0-\u05BD\u05BF-\u05C7"  # vowels and marks
    r"\u05BE\u05C0\u05C3\u05C6\u05F3\u05F4"  # punctuation
    r"\s.,;:!?()\"'\-]"
)


def has_hebrew(word: str) -> bool:
    return bool(HEBREW_BLOCK.search(word))


def clean_word(word: str) -> str:
    """Strip every character that is not Hebrew or common punctuation."""
    return "".join(ch for ch in word if _ALLOWED_CHAR.match(ch)).strip()


def validate_line(line: str) -> str:
    """Return the line's valid Hebrew words joined by single spaces."""
    valid_words = []
    for word in line.split():
        if not has_hebrew(word):
            continue
        cleaned = clean_word(word)
        if cleaned and HEBREW_LETTERS.search(cleaned):
            valid_words.append(cleaned)
    return " ".join(valid_words)


def validate_hebrew_text(text) -> str:
    """
    Filter OCR output down to Hebrew content.

    Words without any character in the Hebrew block are dropped, the
    remaining words lose non-Hebrew symbols, and lines with no valid
    words are removed. Applying it twice gives the same result.
    """
    if not text or not isinstance(text, str):
        return ""

    cleaned_lines = []
    for line in text.split("\n"):
        cleaned = validate_line(line)
        if cleaned:
            cleaned_lines.append(cleaned)

    result = "\n".join(cleaned_lines).strip()
    if len(result) < len(text.strip()):
        logger.debug("Hebrew validation removed %d characters", len(text.strip()) - len(result))
    return result
