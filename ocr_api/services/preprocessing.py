"""
Предобработка изображения перед OCR.

Этапы (каждый включается флагом):
    - enhance: grayscale + autocontrast
    - denoise: медианный фильтр
    - deskew: определение наклона (deskew) и поворот

Результат пишется в новый файл, исходное изображение не меняется.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
from deskew import determine_skew
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from ocr_api.config import settings
from ocr_api.exceptions import EngineError
from ocr_api.schemas import PreprocessingOptions

logger = logging.getLogger(__name__)


def preprocess_image(
    image_path: Union[str, Path],
    output_path: Union[str, Path],
    options: PreprocessingOptions,
) -> Path:
    """
    Применяет предобработку и сохраняет результат.

    Args:
        image_path: исходное изображение
        output_path: куда сохранить результат (формат по расширению)
        options: флаги предобработки

    Returns:
        Path: output_path

    Raises:
        EngineError: изображение не читается или не сохраняется
    """
    try:
        with Image.open(image_path) as source:
            img = source.convert("L")
    except (UnidentifiedImageError, OSError) as e:
        raise EngineError(f"Cannot read image {Path(image_path).name}: {e}") from e

    if options.enhance:
        img = ImageOps.autocontrast(img)

    if options.denoise:
        img = img.filter(ImageFilter.MedianFilter(settings.denoise_filter_size))

    if options.deskew:
        angle = detect_skew(img)
        logger.debug(f"Наклон {Path(image_path).name}: {angle:.2f}")
        img = apply_deskew(img, angle)

    try:
        img.save(output_path)
    except (OSError, ValueError) as e:
        raise EngineError(f"Image preprocessing failed: {e}") from e

    return Path(output_path)


def detect_skew(img: Image.Image) -> float:
    """
    Определяет угол наклона текста на изображении.

    Выполняет:
        1. Resize до deskew_resize_px по длинной стороне
        2. Конвертация в grayscale
        3. Определение угла через deskew (проекционный профиль)

    Args:
        img: изображение

    Returns:
        float: угол в градусах, 0.0 если определить не удалось
    """
    # На больших изображениях алгоритм медленный, на маленьких теряет точность
    w, h = img.size
    ratio = settings.deskew_resize_px / max(w, h)
    small_img = img.resize(
        (max(1, int(w * ratio)), max(1, int(h * ratio))),
        Image.Resampling.BILINEAR,
    )

    img_array = np.array(small_img.convert("L"))

    try:
        angle = determine_skew(img_array, num_peaks=settings.deskew_num_peaks)
    except (ValueError, IndexError):
        angle = None

    # None -> 0.0
    return float(angle) if angle is not None else 0.0


def apply_deskew(img: Image.Image, angle: float) -> Image.Image:
    """
    Применяет коррекцию наклона к изображению.

    Args:
        img: исходное изображение
        angle: угол наклона в градусах

    Returns:
        Image.Image: скорректированное изображение
    """
    if abs(angle) < settings.skew_threshold:
        return img

    # expand=True увеличивает холст чтобы не обрезать углы,
    # fillcolor="white" заполняет новые области белым
    return img.rotate(
        angle,
        resample=Image.Resampling.BICUBIC,
        expand=True,
        fillcolor="white",
    )
