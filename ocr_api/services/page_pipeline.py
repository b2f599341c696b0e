"""
Пайплайн одной страницы.

process_page никогда не пробрасывает исключение: ошибка распознавания
превращается в PageFailure, и вызывающий пайплайн продолжает
обработку остальных страниц.
"""

import logging
from pathlib import Path
from typing import Union

from ocr_api.schemas import PageFailure, PageOutcome, PageSuccess, RecognitionRequest
from ocr_api.services.ocr_processor import Recognizer, recognize_image

logger = logging.getLogger(__name__)


def process_page(
    image_path: Union[str, Path],
    page_number: int,
    request: RecognitionRequest,
    recognize: Recognizer = recognize_image,
) -> PageOutcome:
    """
    Распознаёт одну страницу.

    Args:
        image_path: изображение страницы
        page_number: номер страницы в документе (начинается с 1)
        request: параметры распознавания
        recognize: адаптер распознавания

    Returns:
        PageOutcome: PageSuccess с результатом или PageFailure с текстом ошибки
    """
    try:
        result = recognize(Path(image_path), request)
    except Exception as e:
        logger.warning(f"Ошибка OCR страницы {page_number}: {e}")
        return PageFailure(page_number=page_number, error=str(e) or type(e).__name__)

    return PageSuccess(page_number=page_number, result=result)
