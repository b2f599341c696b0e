"""
Процессор растеризации PDF — адаптер pdf2image (pdftoppm).

Контракт:
    rasterize_document(document_path, density, output_dir, run_id) -> [image_path]

Страницы пишутся на диск в output_dir с префиксом run_id,
по одному файлу на страницу, в порядке страниц начиная с 1.
Удаление файлов — ответственность вызывающего (ArtifactScope).
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from pdf2image import convert_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from pdf2image.pdf2image import pdfinfo_from_path

from ocr_api.config import settings
from ocr_api.exceptions import RasterizationError, UnsupportedDocumentError

logger = logging.getLogger(__name__)

# Сигнатуры адаптеров, подменяются в тестах
# (document_path, density, output_dir, run_id, fmt=None) -> [image_path]
Rasterizer = Callable[..., list[Path]]
PageCounter = Callable[[Path], int]

PDF_SIGNATURE = b"%PDF"

_PDF2IMAGE_ERRORS = (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)


def rasterize_document(
    document_path: Union[str, Path],
    density: int,
    output_dir: Union[str, Path],
    run_id: str,
    fmt: Optional[str] = None,
) -> list[Path]:
    """
    Растеризует все страницы PDF в файлы изображений.

    Использует pdftoppm через pdf2image с записью прямо на диск
    (paths_only), чтобы не держать все страницы в памяти.

    Args:
        document_path: путь к PDF
        density: DPI рендеринга
        output_dir: директория для файлов страниц
        run_id: уникальный префикс имён файлов этого запуска
        fmt: формат изображений (png, jpeg, tiff), по умолчанию из настроек

    Returns:
        list[Path]: пути к изображениям, индекс i — страница i+1

    Raises:
        RasterizationError: документ не разбирается или не рендерится
    """
    fmt = fmt or settings.render_format
    logger.info(
        f"Растеризация {Path(document_path).name}: dpi={density}, "
        f"format={fmt}, threads={settings.render_thread_count}"
    )

    try:
        paths = convert_from_path(
            str(document_path),
            dpi=density,
            fmt=fmt,
            output_folder=str(output_dir),
            output_file=run_id,
            paths_only=True,
            thread_count=settings.render_thread_count,
        )
    except (*_PDF2IMAGE_ERRORS, OSError, ValueError) as e:
        raise RasterizationError(f"Failed to convert PDF to images: {e}") from e

    if not paths:
        raise RasterizationError("Failed to convert PDF to images: document has no pages")

    # pdf2image возвращает файлы отсортированными по имени,
    # а pdftoppm дополняет номер страницы нулями — порядок совпадает с порядком страниц
    result = [Path(p) for p in paths]
    logger.info(f"Растеризация завершена: {len(result)} страниц")
    return result


def get_page_count(document_path: Union[str, Path]) -> int:
    """
    Получает количество страниц PDF без рендеринга (pdfinfo).

    Args:
        document_path: путь к PDF

    Returns:
        int: количество страниц

    Raises:
        RasterizationError: pdfinfo не смог прочитать документ
    """
    try:
        info = pdfinfo_from_path(str(document_path))
    except _PDF2IMAGE_ERRORS as e:
        raise RasterizationError(f"Failed to read PDF info: {e}") from e

    return int(info.get("Pages", 0))


def validate_pdf(document_path: Union[str, Path]) -> None:
    """
    Проверяет PDF сигнатуру (%PDF) в начале файла.

    Raises:
        UnsupportedDocumentError: файл не является PDF
    """
    with open(document_path, "rb") as f:
        header = f.read(len(PDF_SIGNATURE))

    if header != PDF_SIGNATURE:
        raise UnsupportedDocumentError(
            "Invalid PDF file (missing %PDF signature)",
            details={"filename": Path(document_path).name},
        )
