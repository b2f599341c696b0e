"""
Сервисы OCR API.

Модули:
    - ocr_processor: адаптер Tesseract (распознавание одного изображения)
    - pdf_processor: адаптер pdf2image (растеризация PDF, количество страниц)
    - preprocessing: предобработка изображения (контраст, шум, наклон)
    - artifacts: временные файлы запуска и их гарантированное удаление
    - page_pipeline: одна страница, ошибки не пробрасываются
    - document_pipeline: весь документ или выбранные страницы
    - batch_pipeline: пакет независимых изображений
    - orchestrator: фасад для транспортного слоя
"""

from ocr_api.services.batch_pipeline import extract_batch
from ocr_api.services.document_pipeline import DocumentPipeline
from ocr_api.services.ocr_processor import recognize_image
from ocr_api.services.orchestrator import OCROrchestrator
from ocr_api.services.page_pipeline import process_page
from ocr_api.services.pdf_processor import rasterize_document

__all__ = [
    "recognize_image",
    "rasterize_document",
    "process_page",
    "DocumentPipeline",
    "extract_batch",
    "OCROrchestrator",
]
