"""
config.py

Configuration module for the Hebrew OCR pipeline.

Purpose:
--------
Contains all OCR-specific constants and settings used across
the module, including engine parameters, strategy thresholds,
rendering scales, column detection presets, memory limits and
security limits.

Design Principle:
-----------------
Configuration is isolated from business logic.
Changing thresholds or presets should not require editing
core OCR code.
"""

import os

# -----------------------------
# Engine
# -----------------------------
OCR_LANGUAGE = "heb"
TESSERACT_CMD = os.environ.get("TESSERACT_CMD")
PSM_FULL_PAGE = 1  # Automatic page segmentation with OSD
PSM_SINGLE_COLUMN = 6  # Single uniform block of text

# -----------------------------
# Strategy selection
# -----------------------------
STRATEGY_AUTO = "auto"
PARALLEL_MAX_PAGES = 5
BATCH_MAX_PAGES = 15
CHUNKED_MAX_PAGES = 50

PARALLEL_CONCURRENCY = 3
BATCH_CONCURRENCY = 2
CHUNKED_CHUNK_SIZE = 5
PROGRESSIVE_CHUNK_SIZE = 3

# -----------------------------
# Rendering
# -----------------------------
MAX_RENDER_SCALE = 2.5
LARGE_PAGE_AREA = 2_000_000
MEDIUM_PAGE_AREA = 1_000_000
LARGE_PAGE_SCALE = 1.2
MEDIUM_PAGE_SCALE = 1.5
SMALL_PAGE_SCALE = 2.0
COMPLEXITY_FACTORS = {"low": 0.8, "medium": 1.0, "high": 1.2}
PDF_POINTS_PER_INCH = 72

# -----------------------------
# Column detection
# -----------------------------
# sensitivity -> (band start, band end, min gap width, noise threshold)
# band and gap are fractions of width, noise is a fraction of height
COLUMN_SENSITIVITY_PRESETS = {
    "high": (0.25, 0.75, 0.005, 0.02),
    "medium": (0.30, 0.70, 0.015, 0.015),
    "low": (0.35, 0.65, 0.05, 0.005),
}
DEFAULT_SENSITIVITY = "medium"
PAGE_SENSITIVITY = "high"
MIN_COLUMN_CONFIDENCE = 0.3
FORCED_SPLIT_CONFIDENCE = 0.3
CONFIDENCE_SATURATION = 5
COLUMN_PADDING = 10
RIGHT_COLUMN_LABEL = "Right Column"
LEFT_COLUMN_LABEL = "Left Column"

# -----------------------------
# Preprocessing
# -----------------------------
LUMINANCE_THRESHOLD = 128
CONTRAST = 1.3
BRIGHTNESS = 10
ENCODE_FORMAT = ".webp"
ENCODE_QUALITY = 85

# -----------------------------
# Memory
# -----------------------------
BYTES_PER_PIXEL = 4
MEMORY_CLEANUP_THRESHOLD_MB = 800
CLEANUP_GRACE_PERIOD = 0.1  # seconds
CLEANUP_DECAY = 0.7

# -----------------------------
# Progress
# -----------------------------
PROGRESS_DOCUMENT_OPENED = 5
PROGRESS_IMAGE_START = 10
PROGRESS_IMAGE_END = 90
PROGRESS_DONE = 100

# -----------------------------
# Output
# -----------------------------
PAGE_BANNER = "--- Page {page} ---"
PAGE_ERROR_TEMPLATE = "[Error processing page {page}: {message}]"
IMAGE_ERROR_TEMPLATE = "[Error processing image: {message}]"
OUTPUT_SUFFIX = "_extracted_text.txt"

# -----------------------------
# Security
# -----------------------------
MAX_FILE_SIZE_MB = 200
PDF_EXTENSIONS = [".pdf"]
ALLOWED_IMAGE_EXTENSIONS = [
    ".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tiff", ".tif", ".gif",
]
ALLOWED_EXTENSIONS = PDF_EXTENSIONS + ALLOWED_IMAGE_EXTENSIONS

# -----------------------------
# Performance
# -----------------------------
BATCH_WORKERS = 2
