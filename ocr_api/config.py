"""
Конфигурация OCR API.

Все значения читаются из .env файла (или переменных окружения).
У каждого параметра есть дефолт, поэтому сервис стартует и без .env.

Единый префикс: OCR_
Документация по параметрам: .env.example
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки OCR API.

    Читает переменные с префиксом OCR_ из .env файла.
    Объединяет параметры сервера, загрузок, OCR и растеризации.
    """

    model_config = SettingsConfigDict(
        env_prefix="OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # --- Загрузки ---
    upload_dir: str = "uploads"
    max_file_size_mb: int = 50
    max_files_per_request: int = 10

    # --- Временные файлы пайплайна (растеризованные страницы) ---
    temp_dir: str = "temp"

    # --- OCR: Tesseract ---
    default_language: str = "eng"
    ocr_oem: int = 3
    ocr_psm: int = 3
    # 0 — без ограничения времени на один вызов Tesseract
    tesseract_timeout_seconds: float = 0

    # --- Растеризация: PDF -> images ---
    render_dpi: int = 300
    render_format: str = "png"
    render_thread_count: int = 1

    # --- Параллелизм ---
    # 1 — последовательная обработка страниц, >1 — пул потоков
    page_workers: int = 1

    # --- Транспорт ---
    request_timeout_seconds: float = 300.0

    # --- Предобработка изображений ---
    deskew_resize_px: int = 1200
    deskew_num_peaks: int = 20
    skew_threshold: float = 0.5
    denoise_filter_size: int = 3


# Глобальный экземпляр настроек
settings = Settings()
