"""
OCR API — сервис распознавания текста из изображений и PDF.

Состав:
    - FastAPI эндпоинты (изображение, детальный разбор, пакет, PDF, языки)
    - Пайплайны: страница -> документ / пакет, с изоляцией ошибок
    - Гарантированное удаление временных файлов каждого запуска

Распознавание — Tesseract (pytesseract), растеризация — pdftoppm (pdf2image).
"""

from ocr_api.config import settings
from ocr_api.schemas import DocumentOptions, DocumentReport, RecognitionRequest, RecognitionResult

__all__ = [
    "settings",
    "RecognitionRequest",
    "RecognitionResult",
    "DocumentOptions",
    "DocumentReport",
]
