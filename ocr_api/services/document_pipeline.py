"""
Пайплайн документа (PDF).

Координирует обработку:
    1. Валидация: файл существует, PDF сигнатура, языки
    2. Растеризация всех страниц во временные файлы
    3. OCR страниц через process_page (ошибка страницы не прерывает документ)
    4. Сводка и общий текст
    5. Удаление всех временных файлов запуска на любом пути выхода

По умолчанию страницы обрабатываются последовательно. При page_workers > 1
используется пул потоков фиксированного размера, порядок результатов
восстанавливается по позиции страницы.
"""

import base64
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from ocr_api.config import settings
from ocr_api.exceptions import InvalidPageNumbersError, MissingFileError, NoValidPagesError
from ocr_api.languages import validate_language
from ocr_api.schemas import (
    DocumentInfo,
    DocumentOptions,
    DocumentReport,
    DocumentSummary,
    PageFailure,
    PageImage,
    PageOutcome,
    RecognitionRequest,
)
from ocr_api.services.artifacts import ArtifactScope
from ocr_api.services.ocr_processor import Recognizer, recognize_image
from ocr_api.services.page_pipeline import process_page
from ocr_api.services.pdf_processor import (
    PageCounter,
    Rasterizer,
    get_page_count,
    rasterize_document,
    validate_pdf,
)

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"[+-]?\d+")


class DocumentPipeline:
    """
    Обработка PDF документов.

    Attributes:
        recognize: адаптер распознавания
        rasterize: адаптер растеризации
        count_pages: получение количества страниц без рендеринга
        temp_dir: общая директория временных файлов
        workers: количество одновременных OCR страниц (1 — последовательно)
    """

    def __init__(
        self,
        recognize: Recognizer = recognize_image,
        rasterize: Rasterizer = rasterize_document,
        count_pages: PageCounter = get_page_count,
        temp_dir: Optional[Union[str, Path]] = None,
        workers: Optional[int] = None,
    ):
        self.recognize = recognize
        self.rasterize = rasterize
        self.count_pages = count_pages
        self.temp_dir = Path(temp_dir if temp_dir is not None else settings.temp_dir)
        self.workers = max(1, workers if workers is not None else settings.page_workers)

    def extract_document(
        self,
        document_path: Union[str, Path],
        options: DocumentOptions,
    ) -> DocumentReport:
        """
        Распознаёт все страницы документа в порядке страниц.

        Args:
            document_path: путь к PDF
            options: параметры обработки

        Returns:
            DocumentReport: исходы страниц по возрастанию номера, сводка,
                общий текст (если combine_pages)

        Raises:
            ValidationError: файл/язык/формат невалидны (до растеризации)
            RasterizationError: документ не удалось растеризовать
        """
        start = time.perf_counter()
        document_path = Path(document_path)
        self._validate(document_path, options.request)

        logger.info(
            f"Распознавание документа {document_path.name}: "
            f"язык={options.request.language}, dpi={options.density}"
        )

        with ArtifactScope(self.temp_dir, "pdf") as scope:
            image_paths = self.rasterize(
                document_path, options.density, scope.directory, scope.run_id
            )
            scope.track(image_paths)

            jobs = [
                (image_path, page_number)
                for page_number, image_path in enumerate(image_paths, start=1)
            ]
            outcomes = self._process_pages(jobs, options.request)

        text = None
        if options.combine_pages:
            text = combine_page_texts(outcomes, options.include_page_numbers)

        summary = _summarize(
            outcomes,
            total_pages=len(image_paths),
            started_at=start,
            language=options.request.language,
        )
        logger.info(
            f"Документ {document_path.name} обработан: {summary.total_pages} страниц, "
            f"успешно={summary.successful_pages}, ошибок={summary.failed_pages}, "
            f"{summary.processing_time_ms}ms"
        )
        return DocumentReport(pages=outcomes, summary=summary, text=text)

    def extract_document_pages(
        self,
        document_path: Union[str, Path],
        page_numbers: Any,
        options: DocumentOptions,
    ) -> DocumentReport:
        """
        Распознаёт выбранные страницы документа.

        Растеризуются все страницы (pdftoppm не умеет произвольный список),
        затем обрабатываются запрошенные в порядке запроса, включая повторы.
        Номер страницы за пределами документа даёт PageFailure.

        Args:
            document_path: путь к PDF
            page_numbers: список номеров или строка "1,3,5"
            options: параметры обработки

        Returns:
            DocumentReport: исходы в порядке запроса

        Raises:
            InvalidPageNumbersError: страницы не переданы
            NoValidPagesError: после фильтрации не осталось страниц
            ValidationError: файл/язык/формат невалидны
            RasterizationError: документ не удалось растеризовать
        """
        start = time.perf_counter()
        document_path = Path(document_path)
        self._validate(document_path, options.request)
        requested = parse_page_numbers(page_numbers)

        logger.info(f"Распознавание страниц {requested} документа {document_path.name}")

        with ArtifactScope(self.temp_dir, "pdf_pages") as scope:
            image_paths = self.rasterize(
                document_path, options.density, scope.directory, scope.run_id
            )
            scope.track(image_paths)
            total_pages = len(image_paths)

            slots: list[Optional[PageOutcome]] = [None] * len(requested)
            jobs = []
            positions = []
            for position, page_number in enumerate(requested):
                if page_number > total_pages:
                    slots[position] = PageFailure(
                        page_number=page_number,
                        error=(
                            f"Page {page_number} does not exist. "
                            f"Document has {total_pages} pages."
                        ),
                    )
                    continue
                jobs.append((image_paths[page_number - 1], page_number))
                positions.append(position)

            for position, outcome in zip(positions, self._process_pages(jobs, options.request)):
                slots[position] = outcome

        outcomes: list[PageOutcome] = list(slots)

        text = None
        if options.combine_pages:
            text = combine_page_texts(outcomes, options.include_page_numbers)

        summary = _summarize(
            outcomes,
            total_pages=total_pages,
            started_at=start,
            language=options.request.language,
            requested_pages=requested,
        )
        logger.info(
            f"Страницы {requested} обработаны: успешно={summary.successful_pages}, "
            f"ошибок={summary.failed_pages}, {summary.processing_time_ms}ms"
        )
        return DocumentReport(pages=outcomes, summary=summary, text=text)

    def get_document_info(self, document_path: Union[str, Path]) -> DocumentInfo:
        """
        Метаданные PDF: количество страниц, размер, даты.

        Количество страниц читается через pdfinfo, без растеризации.
        """
        document_path = Path(document_path)
        self._validate(document_path)

        page_count = self.count_pages(document_path)
        stat = document_path.stat()
        created = getattr(stat, "st_birthtime", stat.st_ctime)

        return DocumentInfo(
            page_count=page_count,
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(created),
            modified_at=datetime.fromtimestamp(stat.st_mtime),
        )

    def render_page_images(
        self,
        document_path: Union[str, Path],
        density: int,
        fmt: Optional[str] = None,
    ) -> list[PageImage]:
        """
        Растеризует документ и возвращает страницы как base64 data URL.

        Страница, файл которой не удалось прочитать, возвращается с error,
        остальные страницы не затрагиваются. Файлы страниц удаляются до возврата.

        Args:
            document_path: путь к PDF
            density: DPI рендеринга
            fmt: формат изображений, по умолчанию из настроек

        Returns:
            list[PageImage]: страницы по возрастанию номера
        """
        document_path = Path(document_path)
        self._validate(document_path)
        fmt = fmt or settings.render_format

        with ArtifactScope(self.temp_dir, "pdf_images") as scope:
            image_paths = self.rasterize(
                document_path, density, scope.directory, scope.run_id, fmt=fmt
            )
            scope.track(image_paths)

            images = []
            for page_number, image_path in enumerate(image_paths, start=1):
                page_format = image_path.suffix.lstrip(".").lower() or fmt
                mime = "jpeg" if page_format in ("jpg", "jpeg") else page_format
                try:
                    content = image_path.read_bytes()
                except OSError as e:
                    logger.warning(f"Не удалось прочитать страницу {page_number}: {e}")
                    images.append(PageImage(page_number=page_number, error=str(e)))
                    continue
                images.append(
                    PageImage(
                        page_number=page_number,
                        format=page_format,
                        size_bytes=len(content),
                        data=f"data:image/{mime};base64,{base64.b64encode(content).decode('ascii')}",
                    )
                )

        return images

    def _validate(
        self,
        document_path: Path,
        request: Optional[RecognitionRequest] = None,
    ) -> None:
        if not document_path.is_file():
            raise MissingFileError(
                f"Document not found: {document_path.name}",
                details={"path": str(document_path)},
            )
        validate_pdf(document_path)
        if request is not None:
            validate_language(request.language)

    def _process_pages(
        self,
        jobs: list[tuple[Path, int]],
        request: RecognitionRequest,
    ) -> list[PageOutcome]:
        """
        OCR списка (изображение, номер_страницы) с сохранением порядка jobs.

        Пул потоков ограничивает количество одновременных вызовов Tesseract;
        executor.map возвращает результаты в порядке входа.
        """
        if self.workers <= 1 or len(jobs) <= 1:
            outcomes = []
            for index, (image_path, page_number) in enumerate(jobs, start=1):
                logger.info(f"Обработка страницы {page_number} ({index}/{len(jobs)})")
                outcomes.append(process_page(image_path, page_number, request, self.recognize))
            return outcomes

        logger.info(f"Параллельная обработка {len(jobs)} страниц, потоков: {self.workers}")
        with ThreadPoolExecutor(max_workers=min(self.workers, len(jobs))) as executor:
            return list(
                executor.map(
                    lambda job: process_page(job[0], job[1], request, self.recognize),
                    jobs,
                )
            )


def parse_page_numbers(pages: Any) -> list[int]:
    """
    Разбирает запрошенные номера страниц.

    Принимает список [1, "3", 5] или строку "1,3,5". Нечисловые
    и неположительные значения отбрасываются, порядок и повторы сохраняются.

    Args:
        pages: номера страниц

    Returns:
        list[int]: номера страниц

    Raises:
        InvalidPageNumbersError: страницы не переданы
        NoValidPagesError: после фильтрации список пуст
    """
    if pages is None or (isinstance(pages, str) and not pages.strip()):
        raise InvalidPageNumbersError(
            'No pages specified. Provide page numbers as comma-separated values (e.g., "1,3,5")'
        )

    items: Iterable[Any] = pages.split(",") if isinstance(pages, str) else pages
    if isinstance(items, (int, float)):
        items = [items]

    result = []
    for item in items:
        number = _to_page_number(item)
        if number is not None and number > 0:
            result.append(number)

    if not result:
        raise NoValidPagesError(
            "No valid page numbers. Use positive integers (e.g., \"1,3,5\")",
            details={"pages": str(pages)},
        )
    return result


def _to_page_number(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        return int(value.strip())
    return None


def combine_page_texts(outcomes: list[PageOutcome], include_page_numbers: bool) -> str:
    """
    Собирает общий текст документа в порядке outcomes.

    Перед каждой страницей с непустым текстом вставляется маркер
    "--- Page N ---" (если include_page_numbers). Страницы с ошибкой пропускаются.
    """
    parts = []
    for outcome in outcomes:
        if not outcome.success:
            continue
        text = outcome.result.text
        if include_page_numbers and text.strip():
            parts.append(f"\n\n--- Page {outcome.page_number} ---\n\n")
        parts.append(text + "\n")
    return "".join(parts).strip()


def average_confidence(outcomes: list[PageOutcome]) -> float:
    """Средняя уверенность по успешным страницам, 0.0 если таких нет."""
    confidences = [o.result.confidence for o in outcomes if o.success]
    if not confidences:
        return 0.0
    return round(sum(confidences) / len(confidences), 2)


def _summarize(
    outcomes: list[PageOutcome],
    total_pages: int,
    started_at: float,
    language: str,
    requested_pages: Optional[list[int]] = None,
) -> DocumentSummary:
    successful = [o for o in outcomes if o.success]
    return DocumentSummary(
        total_pages=total_pages,
        total_words=sum(o.result.word_count for o in successful),
        average_confidence=average_confidence(outcomes),
        successful_pages=len(successful),
        failed_pages=len(outcomes) - len(successful),
        processing_time_ms=int((time.perf_counter() - started_at) * 1000),
        language=language,
        requested_pages=requested_pages,
    )
