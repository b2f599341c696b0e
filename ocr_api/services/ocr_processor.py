"""
Процессор OCR — адаптер движка распознавания Tesseract.

Контракт:
    recognize_image(image_path, request) -> RecognitionResult

Один вызов image_to_data даёт текст, уверенность и координаты
всех элементов, из которых собираются слова, строки, параграфы и блоки.
Языки проверяются до вызова движка.
"""

import logging
import shlex
from pathlib import Path
from typing import Callable, Union

import pytesseract
from PIL import Image, UnidentifiedImageError

from ocr_api.config import settings
from ocr_api.exceptions import EngineError, MissingFileError
from ocr_api.languages import validate_language
from ocr_api.schemas import RecognitionRequest, RecognitionResult, TextUnit

logger = logging.getLogger(__name__)

# Сигнатура адаптера распознавания, подменяется в тестах
Recognizer = Callable[[Path, RecognitionRequest], RecognitionResult]


def recognize_image(
    image_path: Union[str, Path],
    request: RecognitionRequest,
) -> RecognitionResult:
    """
    Распознаёт текст на одном изображении через Tesseract.

    Args:
        image_path: путь к изображению
        request: параметры распознавания

    Returns:
        RecognitionResult: текст, уверенность и единицы текста

    Raises:
        UnsupportedLanguageError: язык не поддерживается (до вызова движка)
        MissingFileError: файла нет на диске
        EngineError: Tesseract не смог обработать изображение
    """
    validate_language(request.language)

    image_path = Path(image_path)
    if not image_path.is_file():
        raise MissingFileError(
            f"Image file not found: {image_path.name}",
            details={"path": str(image_path)},
        )

    config = build_tesseract_config(request)
    logger.debug(
        f"OCR {image_path.name}: lang={request.language}, config='{config}'"
    )

    try:
        with Image.open(image_path) as image:
            image.load()
            data = pytesseract.image_to_data(
                image,
                lang=request.language,
                config=config,
                output_type=pytesseract.Output.DICT,
                timeout=settings.tesseract_timeout_seconds,
            )
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
        raise EngineError(f"OCR processing failed: {e}") from e
    except (UnidentifiedImageError, OSError) as e:
        raise EngineError(f"Cannot read image {image_path.name}: {e}") from e
    except RuntimeError as e:
        # pytesseract сигнализирует таймаут через RuntimeError
        raise EngineError(f"OCR processing failed: {e}") from e

    result = build_result_from_data(data)
    logger.debug(
        f"OCR {image_path.name} завершён: confidence={result.confidence}, "
        f"слов={result.word_count}"
    )
    return result


def build_tesseract_config(request: RecognitionRequest) -> str:
    """
    Формирует строку конфигурации Tesseract.

    Args:
        request: параметры распознавания

    Returns:
        str: например "--oem 3 --psm 3 -c preserve_interword_spaces=0"
    """
    parts = [
        f"--oem {int(request.engine_mode)}",
        f"--psm {int(request.segmentation_mode)}",
        f"-c preserve_interword_spaces={1 if request.preserve_interword else 0}",
    ]

    # pytesseract разбирает config через shlex, символы нужно экранировать
    if request.whitelist:
        parts.append(f"-c {shlex.quote('tessedit_char_whitelist=' + request.whitelist)}")
    if request.blacklist:
        parts.append(f"-c {shlex.quote('tessedit_char_blacklist=' + request.blacklist)}")

    return " ".join(parts)


def build_result_from_data(data: dict) -> RecognitionResult:
    """
    Собирает RecognitionResult из словаря image_to_data.

    Алгоритм:
        - Слова на одной строке (line_num) соединяются пробелами
        - Строки параграфа и блока — через перенос строки (\\n)
        - Блоки в полном тексте — через пустую строку (\\n\\n)
        - Уверенность строки/параграфа/блока — среднее по его словам

    Args:
        data: словарь от pytesseract.image_to_data()

    Returns:
        RecognitionResult: полный результат распознавания
    """
    # Слова в порядке чтения с ключом (block, par, line)
    entries: list[tuple[tuple[int, int, int], TextUnit]] = []
    # Только реальные оценки слов, conf >= 0
    confidences: list[float] = []

    for i in range(len(data["text"])):
        word_text = str(data["text"][i]).strip()
        if not word_text:  # Пропускаем пустые записи (уровни page/block/...)
            continue

        conf = float(data["conf"][i])
        if conf >= 0:
            confidences.append(conf)
        left = int(data["left"][i])
        top = int(data["top"][i])

        word = TextUnit(
            text=word_text,
            confidence=conf if conf >= 0 else 0.0,
            bbox={
                "left": left,
                "top": top,
                "right": left + int(data["width"][i]),
                "bottom": top + int(data["height"][i]),
            },
        )
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        entries.append((key, word))

    words = [word for _, word in entries]

    lines = _group_units(entries, depth=3, separator=" ")
    line_entries = list(zip(_group_keys(entries, depth=3), lines))

    paragraphs = _group_units(
        [((block, par), line) for (block, par, _), line in line_entries],
        depth=2,
        separator="\n",
    )
    blocks = _group_units(
        [((block,), line) for (block, _, _), line in line_entries],
        depth=1,
        separator="\n",
    )

    avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

    return RecognitionResult(
        text="\n\n".join(block.text for block in blocks).strip(),
        confidence=round(min(max(avg_confidence, 0.0), 100.0), 2),
        words=tuple(words),
        lines=tuple(lines),
        paragraphs=tuple(paragraphs),
        blocks=tuple(blocks),
    )


def _group_keys(entries: list[tuple[tuple, TextUnit]], depth: int) -> list[tuple]:
    """Уникальные ключи группировки в порядке первого появления."""
    return list(dict.fromkeys(tuple(key[:depth]) for key, _ in entries))


def _group_units(
    entries: list[tuple[tuple, TextUnit]],
    depth: int,
    separator: str,
) -> list[TextUnit]:
    """
    Объединяет единицы по префиксу ключа в единицы верхнего уровня.

    Args:
        entries: пары (ключ, единица) в порядке чтения
        depth: длина префикса ключа для группировки
        separator: разделитель текста дочерних единиц

    Returns:
        list[TextUnit]: сгруппированные единицы в порядке первого появления
    """
    groups: dict[tuple, list[TextUnit]] = {}
    for key, unit in entries:
        groups.setdefault(tuple(key[:depth]), []).append(unit)

    result = []
    for units in groups.values():
        result.append(
            TextUnit(
                text=separator.join(u.text for u in units),
                confidence=round(sum(u.confidence for u in units) / len(units), 2),
                bbox=_compute_bbox_from_bboxes([u.bbox for u in units]),
            )
        )
    return result


def _compute_bbox_from_bboxes(bboxes: list[dict]) -> dict:
    """
    Вычисляет охватывающий bbox из списка bbox'ов.

    Args:
        bboxes: список bbox словарей

    Returns:
        dict: {left, top, right, bottom}
    """
    if not bboxes:
        return {"left": 0, "top": 0, "right": 0, "bottom": 0}

    left = min(b["left"] for b in bboxes)
    top = min(b["top"] for b in bboxes)
    right = max(b["right"] for b in bboxes)
    bottom = max(b["bottom"] for b in bboxes)

    return {"left": left, "top": top, "right": right, "bottom": bottom}


def get_engine_version() -> str:
    """Версия Tesseract, поднимает исключение если движок недоступен."""
    return str(pytesseract.get_tesseract_version())
