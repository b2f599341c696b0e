"""
OCR API — FastAPI приложение.

Эндпоинты:
    POST /ocr/extract — распознавание одного изображения
    POST /ocr/extract-detailed — распознавание с координатами слов/строк/параграфов/блоков
    POST /ocr/batch — пакет изображений
    POST /pdf/extract — распознавание всего PDF
    POST /pdf/extract-pages — распознавание выбранных страниц PDF
    POST /pdf/info — метаданные PDF
    POST /pdf/convert-images — страницы PDF как изображения (base64)
    GET  /languages — поддерживаемые языки
    GET  /health — проверка работоспособности (Tesseract + CPU + конфиг)
    GET  /info — описание API

Запуск:
    uvicorn ocr_api.main:app --host 0.0.0.0 --port 8000
"""

import asyncio
import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import AsyncIterator, Optional, TypeVar

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from ocr_api.config import settings
from ocr_api.exceptions import (
    FileTooLargeError,
    MissingFileError,
    OCRServiceError,
    TooManyFilesError,
    UnsupportedFileTypeError,
)
from ocr_api.schemas import (
    BatchItemResult,
    BatchOCRResponse,
    ConvertImagesConfig,
    DetailedOCRConfig,
    DetailedOCRResponse,
    DocumentImagesResponse,
    DocumentInfoResponse,
    DocumentOCRConfig,
    DocumentOCRResponse,
    DocumentPagesConfig,
    DocumentReport,
    FileInfo,
    ImageOCRConfig,
    ImageOCRResponse,
    LanguagesResponse,
    PageResult,
    RecognitionConfig,
)
from ocr_api.services.ocr_processor import get_engine_version
from ocr_api.services.orchestrator import OCROrchestrator

# Настройка логгера
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [OCR-API] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

IMAGE_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/bmp",
    "image/tiff",
    "image/webp",
}
# Многие клиенты не указывают тип PDF, поэтому разрешаем octet-stream
DOCUMENT_CONTENT_TYPES = {"application/pdf", "application/octet-stream"}

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class UnicodeJSONResponse(JSONResponse):
    """JSON ответ с нормальным отображением не-ASCII текста (без \\uXXXX экранирования)."""

    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


# FastAPI приложение
app = FastAPI(
    title="OCR API",
    description="Распознавание текста из изображений и PDF документов (Tesseract OCR)",
    version=VERSION,
    default_response_class=UnicodeJSONResponse,
)

_orchestrator: Optional[OCROrchestrator] = None


def get_orchestrator() -> OCROrchestrator:
    """Фасад OCR (singleton), подменяется в тестах через dependency_overrides."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OCROrchestrator()
    return _orchestrator


@app.exception_handler(OCRServiceError)
async def ocr_service_error_handler(request: Request, exc: OCRServiceError) -> UnicodeJSONResponse:
    """Ошибки пайплайна -> HTTP ответ в формате {"detail": {"error", "message"}}."""
    if exc.status_code >= 500:
        logger.error(f"{request.url.path}: {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.url.path}: {exc.code}: {exc.message}")

    detail = {"error": exc.code, "message": exc.message}
    if exc.details:
        detail["details"] = exc.details
    return UnicodeJSONResponse(status_code=exc.status_code, content={"detail": detail})


@app.get("/health")
async def health_check() -> dict:
    """
    Проверка работоспособности сервиса.

    Проверяет доступность Tesseract, количество CPU,
    и возвращает текущую конфигурацию.

    Returns:
        dict: статус сервиса и информация о системе
    """
    tesseract_ok = False
    try:
        tesseract_version = get_engine_version()
        tesseract_ok = True
    except Exception as e:
        tesseract_version = f"error: {e}"

    return {
        "status": "ok" if tesseract_ok else "degraded",
        "service": "ocr-api",
        "version": VERSION,
        "cpu_count": os.cpu_count(),
        "tesseract": {
            "available": tesseract_ok,
            "version": tesseract_version,
        },
        "config": {
            "max_file_size_mb": settings.max_file_size_mb,
            "max_files_per_request": settings.max_files_per_request,
            "render_dpi": settings.render_dpi,
            "page_workers": settings.page_workers,
            "ocr_oem": settings.ocr_oem,
            "ocr_psm": settings.ocr_psm,
            "request_timeout_seconds": settings.request_timeout_seconds,
        },
    }


@app.get("/info")
async def api_info() -> dict:
    """Описание API: эндпоинты, форматы, лимиты."""
    return {
        "name": "OCR API",
        "version": VERSION,
        "endpoints": {
            "POST /ocr/extract": "Extract text from a single image",
            "POST /ocr/extract-detailed": "Extract text with word/line/paragraph/block positions",
            "POST /ocr/batch": "Process multiple images",
            "POST /pdf/extract": "Extract text from an entire PDF",
            "POST /pdf/extract-pages": "Extract text from specific PDF pages",
            "POST /pdf/info": "PDF page count, size and timestamps",
            "POST /pdf/convert-images": "Render PDF pages to images",
            "GET /languages": "Supported languages",
            "GET /health": "Health check",
        },
        "supported_formats": {
            "images": ["JPEG", "PNG", "BMP", "TIFF", "WebP"],
            "documents": ["PDF"],
        },
        "max_file_size_mb": settings.max_file_size_mb,
        "max_files_per_request": settings.max_files_per_request,
    }


@app.get("/languages", response_model=LanguagesResponse)
async def supported_languages(
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> LanguagesResponse:
    languages = orchestrator.get_supported_languages()
    return LanguagesResponse(languages=languages, total_count=len(languages))


@app.post("/ocr/extract", response_model=ImageOCRResponse)
async def extract_image(
    file: UploadFile = File(..., description="Изображение для распознавания"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"language": "eng", "psm": 3, "enhance": true}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> ImageOCRResponse:
    """
    Распознаёт текст на одном изображении.

    Args:
        file: изображение (multipart/form-data)
        config: JSON строка с ImageOCRConfig

    Returns:
        ImageOCRResponse: текст, уверенность, количества единиц, время
    """
    ocr_config = _parse_config(config, ImageOCRConfig)
    logger.info(f"Получен файл: {file.filename}, конфиг: {ocr_config.model_dump()}")

    async with _stored_uploads([file], IMAGE_CONTENT_TYPES) as uploads:
        image_path, file_info = uploads[0]
        extraction = await _run_blocking(
            orchestrator.run_single_image,
            image_path,
            ocr_config.to_request(),
            ocr_config.to_preprocessing(),
        )

    return ImageOCRResponse(
        text=extraction.text,
        confidence=extraction.confidence,
        word_count=extraction.word_count,
        line_count=extraction.line_count,
        paragraph_count=extraction.paragraph_count,
        block_count=extraction.block_count,
        processing_time_ms=extraction.processing_time_ms,
        language=extraction.language,
        file_info=file_info,
    )


@app.post(
    "/ocr/extract-detailed",
    response_model=DetailedOCRResponse,
    response_model_exclude_none=True,
)
async def extract_image_detailed(
    file: UploadFile = File(..., description="Изображение для распознавания"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"language": "eng", "include_words": true, "include_blocks": false}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> DetailedOCRResponse:
    """Распознаёт изображение и возвращает запрошенные наборы единиц с координатами."""
    ocr_config = _parse_config(config, DetailedOCRConfig)
    logger.info(f"Детальный разбор: {file.filename}, конфиг: {ocr_config.model_dump()}")

    async with _stored_uploads([file], IMAGE_CONTENT_TYPES) as uploads:
        image_path, file_info = uploads[0]
        extraction = await _run_blocking(
            orchestrator.run_detailed_image,
            image_path,
            ocr_config.to_request(),
            ocr_config.to_selection(),
        )

    return DetailedOCRResponse(
        text=extraction.text,
        confidence=extraction.confidence,
        processing_time_ms=extraction.processing_time_ms,
        language=extraction.language,
        file_info=file_info,
        words=_units_to_dicts(extraction.words),
        lines=_units_to_dicts(extraction.lines),
        paragraphs=_units_to_dicts(extraction.paragraphs),
        blocks=_units_to_dicts(extraction.blocks),
    )


@app.post("/ocr/batch", response_model=BatchOCRResponse)
async def extract_batch(
    files: list[UploadFile] = File(..., description="Изображения для распознавания"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"language": "eng", "psm": 3, "oem": 3}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> BatchOCRResponse:
    """
    Распознаёт пакет изображений.

    Ошибка одного файла попадает в его результат и не прерывает пакет.
    Результаты идут в порядке загрузки.
    """
    ocr_config = _parse_config(config, RecognitionConfig)

    if not files:
        raise MissingFileError("No files uploaded")
    if len(files) > settings.max_files_per_request:
        raise TooManyFilesError(
            f"Too many files. Maximum is {settings.max_files_per_request} files per request."
        )

    logger.info(f"Пакет из {len(files)} файлов, конфиг: {ocr_config.model_dump()}")

    async with _stored_uploads(files, IMAGE_CONTENT_TYPES) as uploads:
        report = await _run_blocking(
            orchestrator.run_batch,
            uploads,
            ocr_config.to_request(),
        )

    return BatchOCRResponse(
        results=[BatchItemResult.from_outcome(item) for item in report.items],
        summary=asdict(report.summary),
    )


@app.post("/pdf/extract", response_model=DocumentOCRResponse)
async def extract_pdf(
    file: UploadFile = File(..., description="PDF файл для распознавания"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"language": "eng", "density": 300, "combine_pages": true}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> DocumentOCRResponse:
    """
    Распознаёт все страницы PDF.

    Ошибки отдельных страниц возвращаются в pages[] и считаются в summary.
    """
    ocr_config = _parse_config(config, DocumentOCRConfig)
    logger.info(f"Получен PDF: {file.filename}, конфиг: {ocr_config.model_dump()}")

    async with _stored_uploads([file], DOCUMENT_CONTENT_TYPES, ".pdf") as uploads:
        document_path, file_info = uploads[0]
        report = await _run_blocking(
            orchestrator.run_document,
            document_path,
            ocr_config.to_options(),
        )

    return _document_response(report, file_info)


@app.post("/pdf/extract-pages", response_model=DocumentOCRResponse)
async def extract_pdf_pages(
    file: UploadFile = File(..., description="PDF файл для распознавания"),
    pages: Optional[str] = Form(
        default=None,
        description='Номера страниц через запятую: "1,3,5" (приоритетнее config.pages)',
    ),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"pages": [1, 3], "language": "eng", "density": 300}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> DocumentOCRResponse:
    """
    Распознаёт выбранные страницы PDF в порядке запроса.

    Несуществующая страница даёт ошибку в pages[], остальные обрабатываются.
    """
    ocr_config = _parse_config(config, DocumentPagesConfig)
    requested = pages if pages is not None else ocr_config.pages
    logger.info(f"Получен PDF: {file.filename}, страницы: {requested}")

    async with _stored_uploads([file], DOCUMENT_CONTENT_TYPES, ".pdf") as uploads:
        document_path, file_info = uploads[0]
        report = await _run_blocking(
            orchestrator.run_document_pages,
            document_path,
            requested,
            ocr_config.to_options(),
        )

    return _document_response(report, file_info)


@app.post("/pdf/info", response_model=DocumentInfoResponse)
async def pdf_info(
    file: UploadFile = File(..., description="PDF файл"),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> DocumentInfoResponse:
    """Количество страниц, размер и даты PDF."""
    async with _stored_uploads([file], DOCUMENT_CONTENT_TYPES, ".pdf") as uploads:
        document_path, file_info = uploads[0]
        info = await _run_blocking(orchestrator.get_document_info, document_path)

    return DocumentInfoResponse(
        file_info=file_info,
        document={
            "page_count": info.page_count,
            "size_bytes": info.size_bytes,
            "created_at": info.created_at.isoformat(),
            "modified_at": info.modified_at.isoformat(),
        },
    )


@app.post("/pdf/convert-images", response_model=DocumentImagesResponse)
async def pdf_convert_images(
    file: UploadFile = File(..., description="PDF файл"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"density": 150, "format": "jpeg"}',
    ),
    orchestrator: OCROrchestrator = Depends(get_orchestrator),
) -> DocumentImagesResponse:
    """
    Растеризует страницы PDF и возвращает их как base64 data URL.

    Страница, которую не удалось прочитать, возвращается с error
    и считается в failed_conversions.
    """
    images_config = _parse_config(config, ConvertImagesConfig)

    async with _stored_uploads([file], DOCUMENT_CONTENT_TYPES, ".pdf") as uploads:
        document_path, file_info = uploads[0]
        images = await _run_blocking(
            orchestrator.run_document_images,
            document_path,
            images_config.density,
            images_config.format,
        )

    successful = sum(1 for image in images if image.success)
    return DocumentImagesResponse(
        images=[
            {key: value for key, value in asdict(image).items() if value is not None}
            for image in images
        ],
        summary={
            "total_pages": len(images),
            "successful_conversions": successful,
            "failed_conversions": len(images) - successful,
            "density": images_config.density,
            "format": images_config.format,
        },
        file_info=file_info,
    )


def _document_response(report: DocumentReport, file_info: FileInfo) -> DocumentOCRResponse:
    summary = asdict(report.summary)
    if summary["requested_pages"] is None:
        summary.pop("requested_pages")

    return DocumentOCRResponse(
        text=report.text,
        pages=[PageResult.from_outcome(outcome) for outcome in report.pages],
        summary=summary,
        file_info=file_info,
    )


def _units_to_dicts(units) -> Optional[list[dict]]:
    if units is None:
        return None
    return [asdict(unit) for unit in units]


def _parse_config(config_json: Optional[str], model: type[ConfigT]) -> ConfigT:
    """
    Парсит JSON конфигурацию из строки.

    Args:
        config_json: JSON строка или None
        model: pydantic модель конфигурации

    Returns:
        конфигурация с дефолтными значениями если не указано
    """
    if not config_json:
        return model()

    try:
        config_dict = json.loads(config_json)
        return model(**config_dict)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_config",
                "message": f"Invalid JSON in config: {str(e)}",
            },
        )
    except Exception as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_config",
                "message": f"Invalid config: {str(e)}",
            },
        )


@asynccontextmanager
async def _stored_uploads(
    files: list[UploadFile],
    allowed_types: set[str],
    default_suffix: str = "",
) -> AsyncIterator[list[tuple[Path, FileInfo]]]:
    """
    Сохраняет загрузки на диск и удаляет их при выходе из блока.

    Yields:
        list[tuple[Path, FileInfo]]: пути и информация в порядке загрузки
    """
    stored: list[tuple[Path, FileInfo]] = []
    try:
        for file in files:
            stored.append(await _store_upload(file, allowed_types, default_suffix))
        yield stored
    finally:
        for path, _ in stored:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Не удалось удалить загрузку {path.name}: {e}")


async def _store_upload(
    file: UploadFile,
    allowed_types: set[str],
    default_suffix: str,
) -> tuple[Path, FileInfo]:
    """
    Валидирует и сохраняет загруженный файл.

    Проверяет:
        - Тип файла (allowed_types)
        - Размер файла (не больше max_file_size_mb)

    Raises:
        UnsupportedFileTypeError: недопустимый Content-Type
        FileTooLargeError: файл слишком большой
    """
    if file.content_type and file.content_type not in allowed_types:
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {file.content_type}. "
            f"Allowed types: {', '.join(sorted(allowed_types))}"
        )

    content = await file.read()

    max_size = settings.max_file_size_mb * 1024 * 1024
    if len(content) > max_size:
        raise FileTooLargeError(
            f"File too large: {len(content)} bytes, maximum is {settings.max_file_size_mb} MB"
        )

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    suffix = Path(file.filename or "").suffix.lower() or default_suffix
    path = upload_dir / f"upload-{uuid.uuid4().hex}{suffix}"
    path.write_bytes(content)

    file_info = FileInfo(
        filename=file.filename or f"unknown{default_suffix}",
        size_bytes=len(content),
        content_type=file.content_type,
    )
    return path, file_info


async def _run_blocking(func, *args):
    """
    Выполняет блокирующую обработку в threadpool с таймаутом запроса.

    При таймауте поток не прерывается: пайплайн доработает и удалит
    свои временные файлы сам, клиент получает 504.
    """
    task = asyncio.ensure_future(run_in_threadpool(func, *args))
    try:
        # shield: ожидание прерывается по таймауту, сам поток дорабатывает в фоне
        return await asyncio.wait_for(
            asyncio.shield(task),
            timeout=settings.request_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"Таймаут обработки: {settings.request_timeout_seconds}s")
        task.add_done_callback(_log_abandoned)
        raise HTTPException(
            status_code=504,
            detail={
                "error": "processing_timeout",
                "message": f"Processing did not finish in {settings.request_timeout_seconds} seconds",
            },
        )


def _log_abandoned(task: "asyncio.Future") -> None:
    """Результат обработки после таймаута: только логируется."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Обработка после таймаута завершилась ошибкой: {error}")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Запуск OCR API на {settings.host}:{settings.port}")
    logger.info(f"CPU ядер: {os.cpu_count()}")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
