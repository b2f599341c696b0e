"""Тесты адаптера Tesseract: сборка результата из image_to_data, конфиг, ошибки."""

import pytesseract
import pytest

from ocr_api.exceptions import EngineError, MissingFileError, UnsupportedLanguageError
from ocr_api.schemas import EngineMode, RecognitionRequest, SegmentationMode
from ocr_api.services import ocr_processor
from ocr_api.services.ocr_processor import (
    build_result_from_data,
    build_tesseract_config,
    recognize_image,
)


def tesseract_data(rows):
    """
    Словарь в формате image_to_data из строк
    (text, conf, block, par, line, left, top, width, height).
    """
    keys = ["text", "conf", "block_num", "par_num", "line_num", "left", "top", "width", "height"]
    data = {key: [] for key in keys}
    for row in rows:
        for key, value in zip(keys, row):
            data[key].append(value)
    return data


SAMPLE = tesseract_data([
    # уровень блока/параграфа: пустой текст, conf -1
    ("", -1, 1, 0, 0, 0, 0, 500, 200),
    ("Hello", 90, 1, 1, 1, 10, 10, 50, 20),
    ("world", 80, 1, 1, 1, 70, 10, 50, 20),
    ("second", 70, 1, 1, 2, 10, 40, 60, 20),
    ("Next", 60, 2, 1, 1, 10, 100, 40, 20),
    ("block", -1, 2, 1, 1, 60, 100, 50, 20),
])


def test_result_text_groups_lines_and_blocks():
    result = build_result_from_data(SAMPLE)

    assert result.text == "Hello world\nsecond\n\nNext block"
    assert [line.text for line in result.lines] == ["Hello world", "second", "Next block"]
    assert [p.text for p in result.paragraphs] == ["Hello world\nsecond", "Next block"]
    assert [b.text for b in result.blocks] == ["Hello world\nsecond", "Next block"]
    assert result.word_count == 5
    assert result.line_count == 3
    assert result.paragraph_count == 2
    assert result.block_count == 2


def test_confidence_ignores_negative_scores():
    result = build_result_from_data(SAMPLE)

    assert result.confidence == 75.0
    assert result.words[-1].confidence == 0.0


def test_bbox_of_line_covers_its_words():
    result = build_result_from_data(SAMPLE)

    assert result.words[0].bbox == {"left": 10, "top": 10, "right": 60, "bottom": 30}
    assert result.lines[0].bbox == {"left": 10, "top": 10, "right": 120, "bottom": 30}
    assert result.blocks[0].bbox == {"left": 10, "top": 10, "right": 120, "bottom": 60}


def test_empty_data_gives_empty_result():
    result = build_result_from_data(tesseract_data([("", -1, 1, 0, 0, 0, 0, 10, 10)]))

    assert result.text == ""
    assert result.confidence == 0.0
    assert result.words == ()


def test_tesseract_config_defaults():
    config = build_tesseract_config(RecognitionRequest())
    assert config == "--oem 3 --psm 3 -c preserve_interword_spaces=0"


def test_tesseract_config_with_char_lists():
    request = RecognitionRequest(
        engine_mode=EngineMode.LSTM,
        segmentation_mode=SegmentationMode.SINGLE_BLOCK,
        whitelist="0123456789",
        blacklist="O l",
        preserve_interword=True,
    )

    config = build_tesseract_config(request)

    assert config.startswith("--oem 1 --psm 6 -c preserve_interword_spaces=1")
    assert "-c tessedit_char_whitelist=0123456789" in config
    assert "-c 'tessedit_char_blacklist=O l'" in config


def test_recognize_image_calls_tesseract_once(text_image, monkeypatch):
    calls = []

    def fake_image_to_data(image, lang, config, output_type, timeout):
        calls.append({"lang": lang, "config": config, "size": image.size})
        return SAMPLE

    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)

    result = recognize_image(text_image, RecognitionRequest(language="rus+eng"))

    assert len(calls) == 1
    assert calls[0]["lang"] == "rus+eng"
    assert calls[0]["size"] == (200, 60)
    assert result.text.startswith("Hello world")


def test_unsupported_language_rejected_before_engine(text_image, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("engine must not be called")

    monkeypatch.setattr(pytesseract, "image_to_data", fail)

    with pytest.raises(UnsupportedLanguageError):
        recognize_image(text_image, RecognitionRequest(language="eng+klingon"))


def test_missing_image(tmp_path):
    with pytest.raises(MissingFileError):
        recognize_image(tmp_path / "nope.png", RecognitionRequest())


def test_tesseract_failure_is_engine_error(text_image, monkeypatch):
    def broken(*args, **kwargs):
        raise pytesseract.TesseractError(1, "Error opening data file")

    monkeypatch.setattr(pytesseract, "image_to_data", broken)

    with pytest.raises(EngineError, match="Error opening data file"):
        recognize_image(text_image, RecognitionRequest())


def test_tesseract_not_installed_is_engine_error(text_image, monkeypatch):
    def missing(*args, **kwargs):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, "image_to_data", missing)

    with pytest.raises(EngineError):
        recognize_image(text_image, RecognitionRequest())


def test_unreadable_image_is_engine_error(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image at all")

    with pytest.raises(EngineError, match="Cannot read image"):
        recognize_image(path, RecognitionRequest())


def test_engine_version(monkeypatch):
    monkeypatch.setattr(ocr_processor.pytesseract, "get_tesseract_version", lambda: "5.3.0")
    assert ocr_processor.get_engine_version() == "5.3.0"
