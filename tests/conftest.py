"""Pytest fixtures: поддельные адаптеры распознавания и растеризации, тестовые файлы."""

import threading
import time
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from ocr_api.exceptions import MissingFileError, RasterizationError
from ocr_api.schemas import RecognitionResult, TextUnit
from ocr_api.services.document_pipeline import DocumentPipeline

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"


def make_result(text: str, confidence: float = 90.0) -> RecognitionResult:
    """RecognitionResult с одним словом на каждый токен text и одной строкой/блоком."""
    words = tuple(
        TextUnit(text=token, confidence=confidence, bbox={"left": i * 10, "top": 0, "right": i * 10 + 8, "bottom": 10})
        for i, token in enumerate(text.split())
    )
    units = ()
    if text:
        unit = TextUnit(text=text, confidence=confidence, bbox={"left": 0, "top": 0, "right": 100, "bottom": 10})
        units = (unit,)
    return RecognitionResult(
        text=text,
        confidence=confidence,
        words=words,
        lines=units,
        paragraphs=units,
        blocks=units,
    )


def label_of(image_path) -> str:
    """Метка изображения: часть имени после последнего "-" (номер страницы для растеризатора)."""
    return Path(image_path).stem.rsplit("-", 1)[-1]


class FakeRecognizer:
    """
    Поддельный адаптер распознавания.

    results: метка -> RecognitionResult (по умолчанию "text of <метка>")
    failures: метка -> исключение
    delays: метка -> задержка в секундах
    """

    def __init__(self, results=None, failures=None, delays=None):
        self.results = results or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.requests = []
        self._lock = threading.Lock()

    def __call__(self, image_path, request):
        image_path = Path(image_path)
        label = label_of(image_path)
        with self._lock:
            self.calls.append(label)
            self.requests.append(request)

        if not image_path.is_file():
            raise MissingFileError(f"Image file not found: {image_path.name}")
        if label in self.delays:
            time.sleep(self.delays[label])
        if label in self.failures:
            raise self.failures[label]
        return self.results.get(label, make_result(f"text of {label}"))


class FakeRasterizer:
    """
    Поддельный растеризатор: пишет page_count файлов в output_dir с префиксом run_id.

    fail_after: после скольких записанных страниц упасть с RasterizationError.
    unreadable: номера страниц, путь которых возвращается, но файл не создаётся.
    """

    def __init__(self, page_count: int = 3, fail_after=None, unreadable=()):
        self.page_count = page_count
        self.fail_after = fail_after
        self.unreadable = set(unreadable)
        self.calls = []

    def __call__(self, document_path, density, output_dir, run_id, fmt=None):
        self.calls.append(
            {"document": Path(document_path), "density": density, "run_id": run_id, "fmt": fmt}
        )
        suffix = "jpg" if fmt in ("jpeg", "jpg") else (fmt or "png")

        paths = []
        for page_number in range(1, self.page_count + 1):
            if self.fail_after is not None and page_number > self.fail_after:
                raise RasterizationError("Failed to convert PDF to images: broken page")
            path = Path(output_dir) / f"{run_id}-{page_number}.{suffix}"
            paths.append(path)
            if page_number in self.unreadable:
                continue
            path.write_bytes(f"page {page_number}".encode())
        return paths


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    """Директория временных файлов пайплайна."""
    path = tmp_path / "temp"
    path.mkdir()
    return path


@pytest.fixture
def pdf_file(tmp_path) -> Path:
    path = tmp_path / "document.pdf"
    path.write_bytes(PDF_BYTES)
    return path


@pytest.fixture
def text_image(tmp_path) -> Path:
    """Небольшое PNG изображение с чёрным текстом на белом фоне."""
    image = Image.new("RGB", (200, 60), "white")
    draw = ImageDraw.Draw(image)
    draw.text((10, 20), "Hello OCR", fill="black")
    path = tmp_path / "photo.png"
    image.save(path)
    return path


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer(page_count=3)


@pytest.fixture
def pipeline(recognizer, rasterizer, temp_dir) -> DocumentPipeline:
    return DocumentPipeline(
        recognize=recognizer,
        rasterize=rasterizer,
        count_pages=lambda path: rasterizer.page_count,
        temp_dir=temp_dir,
        workers=1,
    )
