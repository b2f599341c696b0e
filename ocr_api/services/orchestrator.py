"""
Единая точка входа для транспортного слоя.

OCROrchestrator собирает адаптеры и пайплайны и приводит
ошибки к таксономии ocr_api.exceptions. Бизнес-логики здесь нет.
"""

import logging
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from ocr_api.config import settings
from ocr_api.exceptions import EngineError, MissingFileError, OCRServiceError
from ocr_api.languages import list_languages, validate_language
from ocr_api.schemas import (
    BatchReport,
    DocumentInfo,
    DocumentOptions,
    DocumentReport,
    FileInfo,
    ImageExtraction,
    PageImage,
    PreprocessingOptions,
    RecognitionRequest,
    RecognitionResult,
    UnitSelection,
)
from ocr_api.services.artifacts import ArtifactScope
from ocr_api.services.batch_pipeline import run_batch_report
from ocr_api.services.document_pipeline import DocumentPipeline
from ocr_api.services.ocr_processor import Recognizer, recognize_image
from ocr_api.services.pdf_processor import (
    PageCounter,
    Rasterizer,
    get_page_count,
    rasterize_document,
)
from ocr_api.services.preprocessing import preprocess_image

logger = logging.getLogger(__name__)

_NO_UNITS = UnitSelection(words=False, lines=False, paragraphs=False, blocks=False)


class OCROrchestrator:
    """
    Фасад OCR: изображения, пакеты, документы, языки.

    Адаптеры распознавания и растеризации передаются в конструктор,
    по умолчанию — Tesseract и pdf2image.
    """

    def __init__(
        self,
        recognize: Recognizer = recognize_image,
        rasterize: Rasterizer = rasterize_document,
        count_pages: PageCounter = get_page_count,
        temp_dir: Optional[Union[str, Path]] = None,
        page_workers: Optional[int] = None,
    ):
        self.recognize = recognize
        self.temp_dir = Path(temp_dir if temp_dir is not None else settings.temp_dir)
        self.documents = DocumentPipeline(
            recognize=recognize,
            rasterize=rasterize,
            count_pages=count_pages,
            temp_dir=self.temp_dir,
            workers=page_workers,
        )

    def run_single_image(
        self,
        image_path: Union[str, Path],
        request: RecognitionRequest,
        preprocessing: PreprocessingOptions = PreprocessingOptions(),
    ) -> ImageExtraction:
        """
        Распознаёт одно изображение, при необходимости с предобработкой.

        Предобработанное изображение — временный файл, удаляется до возврата.

        Returns:
            ImageExtraction: текст, уверенность, количества единиц, время
        """
        start = time.perf_counter()
        image_path = _require_file(image_path)
        validate_language(request.language)

        if preprocessing.enabled:
            logger.info(
                f"Предобработка {image_path.name}: enhance={preprocessing.enhance}, "
                f"denoise={preprocessing.denoise}, deskew={preprocessing.deskew}"
            )
            with ArtifactScope(self.temp_dir, "preprocess") as scope:
                processed = preprocess_image(
                    image_path, scope.path_for(".png", "image"), preprocessing
                )
                result = self._recognize(processed, request)
        else:
            result = self._recognize(image_path, request)

        extraction = _to_extraction(result, start, request.language, _NO_UNITS)
        logger.info(
            f"Изображение {image_path.name}: confidence={extraction.confidence}, "
            f"слов={extraction.word_count}, {extraction.processing_time_ms}ms"
        )
        return extraction

    def run_detailed_image(
        self,
        image_path: Union[str, Path],
        request: RecognitionRequest,
        selection: UnitSelection = UnitSelection(),
    ) -> ImageExtraction:
        """Распознаёт одно изображение и возвращает выбранные наборы единиц."""
        start = time.perf_counter()
        image_path = _require_file(image_path)
        validate_language(request.language)

        result = self._recognize(image_path, request)
        return _to_extraction(result, start, request.language, selection)

    def run_batch(
        self,
        items: Sequence[tuple[Union[str, Path], FileInfo]],
        request: RecognitionRequest,
    ) -> BatchReport:
        """Пакет изображений: исход на каждый файл в порядке входа + сводка."""
        return run_batch_report(items, request, self.recognize)

    def run_document(
        self,
        document_path: Union[str, Path],
        options: DocumentOptions,
    ) -> DocumentReport:
        return self.documents.extract_document(document_path, options)

    def run_document_pages(
        self,
        document_path: Union[str, Path],
        page_numbers: Any,
        options: DocumentOptions,
    ) -> DocumentReport:
        return self.documents.extract_document_pages(document_path, page_numbers, options)

    def get_document_info(self, document_path: Union[str, Path]) -> DocumentInfo:
        return self.documents.get_document_info(document_path)

    def run_document_images(
        self,
        document_path: Union[str, Path],
        density: int,
        fmt: Optional[str] = None,
    ) -> list[PageImage]:
        return self.documents.render_page_images(document_path, density, fmt)

    def get_supported_languages(self) -> list[dict]:
        return list_languages()

    def _recognize(self, image_path: Path, request: RecognitionRequest) -> RecognitionResult:
        """Вызов адаптера вне пайплайна: любая ошибка движка — EngineError."""
        try:
            return self.recognize(image_path, request)
        except OCRServiceError:
            raise
        except Exception as e:
            raise EngineError(f"OCR processing failed: {e}") from e


def _require_file(path: Union[str, Path]) -> Path:
    path = Path(path)
    if not path.is_file():
        raise MissingFileError(f"File not found: {path.name}", details={"path": str(path)})
    return path


def _to_extraction(
    result: RecognitionResult,
    started_at: float,
    language: str,
    selection: UnitSelection,
) -> ImageExtraction:
    return ImageExtraction(
        text=result.text,
        confidence=result.confidence,
        word_count=result.word_count,
        line_count=result.line_count,
        paragraph_count=result.paragraph_count,
        block_count=result.block_count,
        processing_time_ms=int((time.perf_counter() - started_at) * 1000),
        language=language,
        words=list(result.words) if selection.words else None,
        lines=list(result.lines) if selection.lines else None,
        paragraphs=list(result.paragraphs) if selection.paragraphs else None,
        blocks=list(result.blocks) if selection.blocks else None,
    )
