"""Тесты фасада OCROrchestrator."""

import pytest
from conftest import FakeRasterizer, FakeRecognizer, make_result

from ocr_api.exceptions import EngineError, MissingFileError, UnsupportedLanguageError
from ocr_api.schemas import (
    DocumentOptions,
    FileInfo,
    PreprocessingOptions,
    RecognitionRequest,
    UnitSelection,
)
from ocr_api.services.orchestrator import OCROrchestrator


@pytest.fixture
def orchestrator(recognizer, rasterizer, temp_dir) -> OCROrchestrator:
    return OCROrchestrator(
        recognize=recognizer,
        rasterize=rasterizer,
        count_pages=lambda path: rasterizer.page_count,
        temp_dir=temp_dir,
        page_workers=1,
    )


def test_single_image(orchestrator, text_image):
    extraction = orchestrator.run_single_image(text_image, RecognitionRequest())

    assert extraction.text == "text of photo"
    assert extraction.confidence == 90.0
    assert extraction.word_count == 3
    assert extraction.line_count == 1
    assert extraction.language == "eng"
    assert extraction.words is None
    assert extraction.blocks is None


def test_preprocessed_copy_is_recognized_and_removed(orchestrator, recognizer, text_image, temp_dir):
    orchestrator.run_single_image(
        text_image,
        RecognitionRequest(),
        PreprocessingOptions(enhance=True, denoise=True),
    )

    # распознан временный файл "<run_id>-image.png", а не исходный
    assert recognizer.calls == ["image"]
    assert list(temp_dir.iterdir()) == []
    assert text_image.exists()


def test_preprocessing_temp_removed_on_engine_failure(temp_dir, text_image):
    recognizer = FakeRecognizer(failures={"image": EngineError("OCR processing failed")})
    orchestrator = OCROrchestrator(recognize=recognizer, rasterize=FakeRasterizer(), temp_dir=temp_dir)

    with pytest.raises(EngineError):
        orchestrator.run_single_image(text_image, RecognitionRequest(), PreprocessingOptions(enhance=True))

    assert list(temp_dir.iterdir()) == []


def test_unexpected_engine_error_is_wrapped(temp_dir, text_image):
    recognizer = FakeRecognizer(failures={"photo": ValueError("weird")})
    orchestrator = OCROrchestrator(recognize=recognizer, temp_dir=temp_dir)

    with pytest.raises(EngineError, match="weird"):
        orchestrator.run_single_image(text_image, RecognitionRequest())


def test_single_image_validation(orchestrator, recognizer, text_image, tmp_path):
    with pytest.raises(MissingFileError):
        orchestrator.run_single_image(tmp_path / "none.png", RecognitionRequest())

    with pytest.raises(UnsupportedLanguageError):
        orchestrator.run_single_image(text_image, RecognitionRequest(language="eng+"))

    assert recognizer.calls == []


def test_detailed_image_selection(temp_dir, text_image):
    recognizer = FakeRecognizer(results={"photo": make_result("one two", 75.0)})
    orchestrator = OCROrchestrator(recognize=recognizer, temp_dir=temp_dir)

    extraction = orchestrator.run_detailed_image(
        text_image,
        RecognitionRequest(),
        UnitSelection(words=True, lines=False, paragraphs=False, blocks=True),
    )

    assert [w.text for w in extraction.words] == ["one", "two"]
    assert extraction.lines is None
    assert extraction.paragraphs is None
    assert [b.text for b in extraction.blocks] == ["one two"]
    assert extraction.block_count == 1


def test_batch(orchestrator, tmp_path):
    path = tmp_path / "upload-x.png"
    path.write_bytes(b"x")
    info = FileInfo(filename="x.png", size_bytes=1)

    report = orchestrator.run_batch([(path, info), (tmp_path / "upload-gone.png", info)], RecognitionRequest())

    assert [item.success for item in report.items] == [True, False]
    assert report.summary.failed_files == 1


def test_document_and_pages(orchestrator, pdf_file, temp_dir):
    report = orchestrator.run_document(pdf_file, DocumentOptions())
    assert report.summary.total_pages == 3

    report = orchestrator.run_document_pages(pdf_file, "3", DocumentOptions(combine_pages=False))
    assert [o.page_number for o in report.pages] == [3]
    assert list(temp_dir.iterdir()) == []


def test_document_info_and_images(orchestrator, pdf_file):
    assert orchestrator.get_document_info(pdf_file).page_count == 3
    assert len(orchestrator.run_document_images(pdf_file, 100)) == 3


def test_supported_languages(orchestrator):
    languages = orchestrator.get_supported_languages()

    codes = [lang["code"] for lang in languages]
    assert len(languages) == 31
    assert codes[0] == "eng"
    assert "rus" in codes
    assert {"code": "chi_sim", "name": "Chinese (Simplified)"} in languages
