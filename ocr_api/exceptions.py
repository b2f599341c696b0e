"""
Исключения OCR API.

Иерархия:
    OCRServiceError
        ValidationError — ошибки входных данных, до вызова движка/растеризатора
        EngineError — сбой распознавания одного изображения
        RasterizationError — сбой рендеринга документа
        ResourceError — сбой очистки временных файлов (только логируется)
"""

from typing import Optional


class OCRServiceError(Exception):
    """Базовое исключение OCR API"""

    code = "ocr_service_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(OCRServiceError):
    """Ошибка валидации запроса"""

    code = "validation_error"
    status_code = 400


class MissingFileError(ValidationError):
    """Файл не передан или не найден на диске"""

    code = "no_file"


class UnsupportedLanguageError(ValidationError):
    """Язык не входит в список поддерживаемых"""

    code = "unsupported_language"


class UnsupportedDocumentError(ValidationError):
    """Файл не является PDF"""

    code = "invalid_pdf"


class InvalidPageNumbersError(ValidationError):
    """Список страниц не передан или не разбирается"""

    code = "invalid_page_format"


class NoValidPagesError(ValidationError):
    """После фильтрации не осталось ни одной страницы"""

    code = "no_valid_pages"


class UnsupportedFileTypeError(ValidationError):
    """Недопустимый Content-Type загрузки"""

    code = "invalid_file_type"


class FileTooLargeError(ValidationError):
    """Файл больше допустимого размера"""

    code = "file_too_large"
    status_code = 413


class TooManyFilesError(ValidationError):
    """Слишком много файлов в одном запросе"""

    code = "too_many_files"


class EngineError(OCRServiceError):
    """Ошибка распознавания текста"""

    code = "ocr_processing_error"
    status_code = 422


class RasterizationError(OCRServiceError):
    """Ошибка рендеринга документа в изображения"""

    code = "pdf_conversion_error"
    status_code = 422


class ResourceError(OCRServiceError):
    """Ошибка удаления временного файла"""

    code = "cleanup_error"
