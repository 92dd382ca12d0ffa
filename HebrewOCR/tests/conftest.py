"""
Shared fakes for the Hebrew OCR tests.

FakeRasterizer renders black pages whose height encodes the page index
(viewport 100 x (100 + index) points, rendered at scale 2.0), and
FakeRecognizer decodes the encoded image it receives to recover that
index. Together they let pipeline tests run without poppler or
Tesseract while still exercising rendering, preprocessing and
encoding for real.
"""

import threading
import time

import cv2
import numpy as np
import pytest
from PIL import Image

from HebrewOCR.context import ProcessingObserver
from HebrewOCR.engine import RecognitionResult, Recognizer, reset_engine
from HebrewOCR.renderer import DocumentHandle, PageHandle, Rasterizer, Viewport

UNITS = "אבגדהוזחט"
TENS = "יכלמנסעפצ"


def hebrew_number(n):
    """Letters for 1-99, used to give every fake page distinct text."""
    tens, units = divmod(n, 10)
    letters = ""
    if tens:
        letters += TENS[tens - 1]
    if units:
        letters += UNITS[units - 1]
    return letters


class FakeRasterizer(Rasterizer):
    def __init__(self, page_count=3, fail_pages=(), open_error=None, delays=None):
        self.page_count = page_count
        self.fail_pages = set(fail_pages)
        self.open_error = open_error
        self.delays = delays or {}
        self.rendered = []
        self.cleaned = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def open_document(self, path):
        if self.open_error is not None:
            raise self.open_error
        return DocumentHandle(path=path, page_count=self.page_count)

    def get_page(self, document, index):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        return PageHandle(document=document, index=index, viewport=Viewport(100, 100 + index))

    def render(self, page, scale):
        time.sleep(self.delays.get(page.index, 0))
        if page.index in self.fail_pages:
            raise RuntimeError("corrupt page stream")
        self.rendered.append(page.index)
        width = int(round(page.viewport.width * scale))
        height = int(round(page.viewport.height * scale))
        surface = np.zeros((height, width, 4), dtype=np.uint8)
        surface[:, :, 3] = 255
        return surface

    def cleanup(self, page):
        with self._lock:
            self.in_flight -= 1
            self.cleaned.append(page.index)

    def close_document(self, document):
        self.closed = True


class FakeRecognizer(Recognizer):
    """Returns 'דף <index in letters>' with confidence 90."""

    def __init__(self, fail_pages=(), confidence=90.0, load_error=None):
        self.fail_pages = set(fail_pages)
        self.confidence = confidence
        self.load_error = load_error
        self.calls = []
        self._lock = threading.Lock()

    def load(self):
        if self.load_error is not None:
            raise self.load_error

    @staticmethod
    def index_for(image):
        decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        return decoded.shape[0] // 2 - 100, decoded.shape[1]

    @staticmethod
    def text_for(index):
        return f"דף {hebrew_number(index)}"

    def recognize(self, image, language, progress_logger=None, page_segmentation=None):
        index, width = self.index_for(image)
        with self._lock:
            self.calls.append((index, page_segmentation, width, language))
        if progress_logger is not None:
            progress_logger({"status": "recognizing text", "progress": 0.0})
        if index in self.fail_pages:
            raise RuntimeError("engine crashed")
        if progress_logger is not None:
            progress_logger({"status": "recognizing text", "progress": 1.0})
        return RecognitionResult(text=self.text_for(index), confidence=self.confidence)


class RecordingObserver(ProcessingObserver):
    def __init__(self):
        self.stats = []
        self.progress = []
        self.memory = []
        self.snapshots = []
        self.states = []

    def on_stats_update(self, stats):
        self.stats.append(stats)

    def on_progress(self, percent):
        self.progress.append(percent)

    def on_memory_update(self, mb):
        self.memory.append(mb)

    def on_intermediate_results(self, results):
        self.snapshots.append(results)

    def on_state_change(self, state):
        self.states.append(state)

    @property
    def calls(self):
        return self.stats + self.progress + self.memory + self.snapshots + self.states


@pytest.fixture(autouse=True)
def _reset_engine():
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer


@pytest.fixture
def pdf_file(tmp_path):
    """A file that passes validation; FakeRasterizer never parses it."""
    path = tmp_path / "sefer.pdf"
    path.write_bytes(b"%PDF-1.4\n%fake\n")
    return path


@pytest.fixture
def image_file(tmp_path):
    """A black 200x250 PNG; FakeRecognizer reads it as index 25."""
    path = tmp_path / "scan.png"
    Image.new("RGB", (200, 250), color=(0, 0, 0)).save(path)
    return path
