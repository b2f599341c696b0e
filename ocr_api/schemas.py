"""
Схемы данных OCR API.

Включает:
    - Перечисления режимов Tesseract (OEM, PSM)
    - Внутренние неизменяемые dataclass'ы пайплайна
      (запрос распознавания, результат, исходы страниц и файлов, отчёты)
    - Pydantic модели для API (конфигурации запросов и ответы)
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from ocr_api.config import settings


# =============================================================================
# Режимы Tesseract
# =============================================================================


class EngineMode(IntEnum):
    """OCR Engine Mode (--oem)."""

    LEGACY = 0
    LSTM = 1
    LEGACY_LSTM = 2
    DEFAULT = 3


class SegmentationMode(IntEnum):
    """Page Segmentation Mode (--psm)."""

    OSD_ONLY = 0
    AUTO_OSD = 1
    AUTO_ONLY = 2
    AUTO = 3
    SINGLE_COLUMN = 4
    SINGLE_BLOCK_VERT_TEXT = 5
    SINGLE_BLOCK = 6
    SINGLE_LINE = 7
    SINGLE_WORD = 8
    CIRCLE_WORD = 9
    SINGLE_CHAR = 10
    SPARSE_TEXT = 11
    SPARSE_TEXT_OSD = 12
    RAW_LINE = 13


# =============================================================================
# Внутренние dataclass'ы пайплайна
# =============================================================================


@dataclass(frozen=True)
class RecognitionRequest:
    """
    Параметры распознавания одного изображения.

    Создаётся один раз на запрос и передаётся во все этапы пайплайна
    без изменений.

    Attributes:
        language: код языка Tesseract, составной через "+" ("rus+eng")
        engine_mode: режим движка (OEM)
        segmentation_mode: режим сегментации страницы (PSM)
        whitelist: разрешённые символы (пусто — без ограничения)
        blacklist: запрещённые символы
        preserve_interword: сохранять межсловные пробелы
    """

    language: str = "eng"
    engine_mode: EngineMode = EngineMode.DEFAULT
    segmentation_mode: SegmentationMode = SegmentationMode.AUTO
    whitelist: str = ""
    blacklist: str = ""
    preserve_interword: bool = False


@dataclass(frozen=True)
class TextUnit:
    """
    Единица распознанного текста: слово, строка, параграф или блок.

    Attributes:
        text: текст единицы
        confidence: уверенность распознавания (0-100)
        bbox: bounding box {left, top, right, bottom} в пикселях
    """

    text: str
    confidence: float
    bbox: dict


@dataclass(frozen=True)
class RecognitionResult:
    """
    Результат распознавания одного изображения.

    Attributes:
        text: полный текст
        confidence: средняя уверенность по словам (0-100)
        words, lines, paragraphs, blocks: единицы текста в порядке чтения
    """

    text: str
    confidence: float
    words: tuple[TextUnit, ...] = ()
    lines: tuple[TextUnit, ...] = ()
    paragraphs: tuple[TextUnit, ...] = ()
    blocks: tuple[TextUnit, ...] = ()

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def paragraph_count(self) -> int:
        return len(self.paragraphs)

    @property
    def block_count(self) -> int:
        return len(self.blocks)


@dataclass(frozen=True)
class PageSuccess:
    """Страница распознана. Номер страницы начинается с 1."""

    page_number: int
    result: RecognitionResult

    success = True


@dataclass(frozen=True)
class PageFailure:
    """Страница не распознана, error — описание ошибки."""

    page_number: int
    error: str

    success = False


PageOutcome = Union[PageSuccess, PageFailure]


@dataclass(frozen=True)
class UnitSelection:
    """Какие наборы единиц включать в детальный ответ."""

    words: bool = True
    lines: bool = True
    paragraphs: bool = True
    blocks: bool = True


@dataclass(frozen=True)
class PreprocessingOptions:
    """Флаги предобработки изображения перед OCR."""

    enhance: bool = False
    denoise: bool = False
    deskew: bool = False

    @property
    def enabled(self) -> bool:
        return self.enhance or self.denoise or self.deskew


@dataclass(frozen=True)
class DocumentOptions:
    """
    Параметры обработки документа.

    Attributes:
        request: параметры распознавания каждой страницы
        density: разрешение растеризации (DPI)
        combine_pages: собирать общий текст документа
        include_page_numbers: вставлять маркеры "--- Page N ---" в общий текст
    """

    request: RecognitionRequest = field(default_factory=RecognitionRequest)
    density: int = 300
    combine_pages: bool = True
    include_page_numbers: bool = True


@dataclass
class DocumentSummary:
    """
    Сводка по документу.

    Attributes:
        total_pages: количество страниц (растеризованных или в документе)
        total_words: слов на успешно распознанных страницах
        average_confidence: средняя уверенность по успешным страницам, 0 если их нет
        successful_pages: количество успешных страниц
        failed_pages: количество страниц с ошибкой
        processing_time_ms: время обработки
        language: язык распознавания
        requested_pages: запрошенные страницы (только для выборочной обработки)
    """

    total_pages: int
    total_words: int
    average_confidence: float
    successful_pages: int
    failed_pages: int
    processing_time_ms: int
    language: str
    requested_pages: Optional[list[int]] = None


@dataclass
class DocumentReport:
    """Отчёт по документу: исходы страниц, сводка и общий текст."""

    pages: list[PageOutcome]
    summary: DocumentSummary
    text: Optional[str] = None


@dataclass(frozen=True)
class BatchItemSuccess:
    """Файл пакета распознан. index — позиция во входном списке."""

    index: int
    file_info: "FileInfo"
    text: str
    confidence: float
    word_count: int
    line_count: int

    success = True


@dataclass(frozen=True)
class BatchItemFailure:
    """Файл пакета не распознан."""

    index: int
    file_info: "FileInfo"
    error: str

    success = False


BatchItemOutcome = Union[BatchItemSuccess, BatchItemFailure]


@dataclass
class BatchSummary:
    total_files: int
    successful_files: int
    failed_files: int
    processing_time_ms: int
    language: str


@dataclass
class BatchReport:
    items: list[BatchItemOutcome]
    summary: BatchSummary


@dataclass
class ImageExtraction:
    """
    Результат распознавания одиночного изображения.

    Поля единиц равны None, если набор не был запрошен.
    """

    text: str
    confidence: float
    word_count: int
    line_count: int
    paragraph_count: int
    block_count: int
    processing_time_ms: int
    language: str
    words: Optional[list[TextUnit]] = None
    lines: Optional[list[TextUnit]] = None
    paragraphs: Optional[list[TextUnit]] = None
    blocks: Optional[list[TextUnit]] = None


@dataclass
class DocumentInfo:
    """Метаданные PDF документа."""

    page_count: int
    size_bytes: int
    created_at: datetime
    modified_at: datetime


@dataclass
class PageImage:
    """
    Растеризованная страница в виде data URL.

    Если файл страницы не удалось прочитать, заполнен только error.
    """

    page_number: int
    format: Optional[str] = None
    size_bytes: Optional[int] = None
    data: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# =============================================================================
# Pydantic модели для API: конфигурации запросов
# =============================================================================


class RecognitionConfig(BaseModel):
    """
    Общие параметры распознавания от пользователя.

    Attributes:
        language: код языка, составной через "+" ("rus+eng")
        psm: режим сегментации страницы Tesseract
        oem: режим движка Tesseract
        whitelist: разрешённые символы
        blacklist: запрещённые символы
        preserve_interword: сохранять межсловные пробелы
    """

    language: str = Field(
        default_factory=lambda: settings.default_language,
        description="Язык OCR: 'eng', 'rus', 'rus+eng'",
    )
    psm: SegmentationMode = Field(
        default_factory=lambda: SegmentationMode(settings.ocr_psm),
        description="Page segmentation mode (0-13)",
    )
    oem: EngineMode = Field(
        default_factory=lambda: EngineMode(settings.ocr_oem),
        description="OCR engine mode (0-3)",
    )
    whitelist: str = ""
    blacklist: str = ""
    preserve_interword: bool = False

    def to_request(self) -> RecognitionRequest:
        return RecognitionRequest(
            language=self.language,
            engine_mode=self.oem,
            segmentation_mode=self.psm,
            whitelist=self.whitelist,
            blacklist=self.blacklist,
            preserve_interword=self.preserve_interword,
        )


class ImageOCRConfig(RecognitionConfig):
    """Параметры распознавания одиночного изображения с предобработкой."""

    enhance: bool = False
    denoise: bool = False
    deskew: bool = False

    def to_preprocessing(self) -> PreprocessingOptions:
        return PreprocessingOptions(
            enhance=self.enhance,
            denoise=self.denoise,
            deskew=self.deskew,
        )


class DetailedOCRConfig(RecognitionConfig):
    """Параметры детального распознавания: какие единицы вернуть."""

    include_words: bool = True
    include_lines: bool = True
    include_paragraphs: bool = True
    include_blocks: bool = True

    def to_selection(self) -> UnitSelection:
        return UnitSelection(
            words=self.include_words,
            lines=self.include_lines,
            paragraphs=self.include_paragraphs,
            blocks=self.include_blocks,
        )


class DocumentOCRConfig(RecognitionConfig):
    """
    Параметры распознавания PDF.

    Attributes:
        density: DPI растеризации
        combine_pages: собрать общий текст
        include_page_numbers: маркеры страниц в общем тексте
    """

    density: int = Field(
        default_factory=lambda: settings.render_dpi,
        ge=1,
        description="DPI растеризации страниц",
    )
    combine_pages: bool = True
    include_page_numbers: bool = True

    def to_options(self) -> DocumentOptions:
        return DocumentOptions(
            request=self.to_request(),
            density=self.density,
            combine_pages=self.combine_pages,
            include_page_numbers=self.include_page_numbers,
        )


class DocumentPagesConfig(DocumentOCRConfig):
    """
    Параметры выборочного распознавания страниц PDF.

    pages принимает список [1, 3, 5], строку "1,3,5" или одно число.
    Значения не проверяются здесь: нечисловые и неположительные
    отбрасываются при разборе страниц. Порядок и повторы сохраняются.
    """

    pages: Optional[Union[list[Any], str, bool, int, float]] = Field(
        default=None,
        description="Страницы: [1, 3, 5] или \"1,3,5\"",
    )
    combine_pages: bool = False


class ConvertImagesConfig(BaseModel):
    """Параметры растеризации PDF в изображения."""

    density: int = Field(
        default_factory=lambda: settings.render_dpi,
        ge=1,
    )
    format: Literal["png", "jpeg", "jpg", "tiff"] = Field(
        default_factory=lambda: settings.render_format,
        description="Формат изображений страниц",
    )


# =============================================================================
# Pydantic модели для API: ответы
# =============================================================================


class FileInfo(BaseModel):
    """
    Информация о загруженном файле.

    Attributes:
        filename: исходное имя файла
        size_bytes: размер файла в байтах
        content_type: MIME тип из запроса
    """

    filename: str
    size_bytes: int
    content_type: Optional[str] = None


class PageResult(BaseModel):
    """
    Результат OCR для одной страницы документа.

    Attributes:
        page_number: номер страницы (начинается с 1)
        success: страница распознана
        text: распознанный текст
        confidence: средняя уверенность (0-100)
        word_count: количество слов
        line_count: количество строк
        words: слова с координатами
        lines: строки с координатами
        error: описание ошибки (если success=False)
    """

    page_number: int
    success: bool
    text: str = ""
    confidence: float = 0.0
    word_count: int = 0
    line_count: int = 0
    words: list[dict] = []
    lines: list[dict] = []
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: PageOutcome) -> "PageResult":
        if not outcome.success:
            return cls(
                page_number=outcome.page_number,
                success=False,
                error=outcome.error,
            )

        result = outcome.result
        return cls(
            page_number=outcome.page_number,
            success=True,
            text=result.text,
            confidence=result.confidence,
            word_count=result.word_count,
            line_count=result.line_count,
            words=[asdict(unit) for unit in result.words],
            lines=[asdict(unit) for unit in result.lines],
        )


class BatchItemResult(BaseModel):
    """Результат OCR одного файла пакета."""

    index: int
    success: bool
    file_info: FileInfo
    text: Optional[str] = None
    confidence: Optional[float] = None
    word_count: Optional[int] = None
    line_count: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: BatchItemOutcome) -> "BatchItemResult":
        if not outcome.success:
            return cls(
                index=outcome.index,
                success=False,
                file_info=outcome.file_info,
                error=outcome.error,
            )

        return cls(
            index=outcome.index,
            success=True,
            file_info=outcome.file_info,
            text=outcome.text,
            confidence=outcome.confidence,
            word_count=outcome.word_count,
            line_count=outcome.line_count,
        )


class ImageOCRResponse(BaseModel):
    """Ответ на распознавание одиночного изображения."""

    success: bool = True
    text: str
    confidence: float
    word_count: int
    line_count: int
    paragraph_count: int
    block_count: int
    processing_time_ms: int
    language: str
    file_info: FileInfo


class DetailedOCRResponse(BaseModel):
    """
    Ответ на детальное распознавание.

    Наборы единиц присутствуют только если были запрошены.
    """

    success: bool = True
    text: str
    confidence: float
    processing_time_ms: int
    language: str
    file_info: FileInfo
    words: Optional[list[dict]] = None
    lines: Optional[list[dict]] = None
    paragraphs: Optional[list[dict]] = None
    blocks: Optional[list[dict]] = None


class BatchOCRResponse(BaseModel):
    """Ответ на пакетное распознавание. results в порядке загрузки."""

    success: bool = True
    results: list[BatchItemResult]
    summary: dict


class DocumentOCRResponse(BaseModel):
    """Ответ на распознавание PDF."""

    success: bool = True
    text: Optional[str] = None
    pages: list[PageResult]
    summary: dict
    file_info: FileInfo


class DocumentInfoResponse(BaseModel):
    success: bool = True
    file_info: FileInfo
    document: dict


class DocumentImagesResponse(BaseModel):
    success: bool = True
    images: list[dict]
    summary: dict
    file_info: FileInfo


class LanguagesResponse(BaseModel):
    success: bool = True
    languages: list[dict]
    total_count: int
