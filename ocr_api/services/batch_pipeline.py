"""
Пакетная обработка независимых изображений.

Каждый файл проходит через process_page (индекс файла вместо номера
страницы), поэтому ошибка одного файла не влияет на остальные.
Результаты возвращаются в порядке входного списка. Файлы пакета
загружены клиентом, пайплайн их не удаляет.
"""

import logging
import time
from pathlib import Path
from typing import Sequence, Union

from ocr_api.languages import validate_language
from ocr_api.schemas import (
    BatchItemFailure,
    BatchItemOutcome,
    BatchItemSuccess,
    BatchReport,
    BatchSummary,
    FileInfo,
    RecognitionRequest,
)
from ocr_api.services.ocr_processor import Recognizer, recognize_image
from ocr_api.services.page_pipeline import process_page

logger = logging.getLogger(__name__)


def extract_batch(
    items: Sequence[tuple[Union[str, Path], FileInfo]],
    request: RecognitionRequest,
    recognize: Recognizer = recognize_image,
) -> list[BatchItemOutcome]:
    """
    Распознаёт пакет изображений последовательно, в порядке входа.

    Args:
        items: пары (путь к изображению, информация о файле)
        request: общие параметры распознавания

    Returns:
        list[BatchItemOutcome]: исход для каждого файла, индекс = позиция во входе

    Raises:
        UnsupportedLanguageError: язык не поддерживается (до обработки файлов)
    """
    validate_language(request.language)

    outcomes: list[BatchItemOutcome] = []
    for index, (image_path, file_info) in enumerate(items):
        logger.info(f"Файл {index + 1}/{len(items)}: {file_info.filename}")

        outcome = process_page(image_path, index, request, recognize)
        if outcome.success:
            result = outcome.result
            outcomes.append(
                BatchItemSuccess(
                    index=index,
                    file_info=file_info,
                    text=result.text,
                    confidence=result.confidence,
                    word_count=result.word_count,
                    line_count=result.line_count,
                )
            )
        else:
            outcomes.append(
                BatchItemFailure(index=index, file_info=file_info, error=outcome.error)
            )

    return outcomes


def summarize_batch(
    outcomes: list[BatchItemOutcome],
    started_at: float,
    language: str,
) -> BatchSummary:
    """Сводка пакета: всего, успешно, с ошибкой, время."""
    successful = sum(1 for o in outcomes if o.success)
    return BatchSummary(
        total_files=len(outcomes),
        successful_files=successful,
        failed_files=len(outcomes) - successful,
        processing_time_ms=int((time.perf_counter() - started_at) * 1000),
        language=language,
    )


def run_batch_report(
    items: Sequence[tuple[Union[str, Path], FileInfo]],
    request: RecognitionRequest,
    recognize: Recognizer = recognize_image,
) -> BatchReport:
    """extract_batch + сводка."""
    start = time.perf_counter()
    outcomes = extract_batch(items, request, recognize)
    summary = summarize_batch(outcomes, start, request.language)

    logger.info(
        f"Пакет обработан: {summary.total_files} файлов, "
        f"успешно={summary.successful_files}, ошибок={summary.failed_files}, "
        f"{summary.processing_time_ms}ms"
    )
    return BatchReport(items=outcomes, summary=summary)
