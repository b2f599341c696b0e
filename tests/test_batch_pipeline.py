"""Тесты пакетной обработки: порядок результатов равен порядку входа."""

import pytest
from conftest import FakeRecognizer, make_result

from ocr_api.exceptions import EngineError, UnsupportedLanguageError
from ocr_api.schemas import BatchItemFailure, BatchItemSuccess, FileInfo, RecognitionRequest
from ocr_api.services.batch_pipeline import extract_batch, run_batch_report


def make_items(tmp_path, names):
    items = []
    for name in names:
        path = tmp_path / f"upload-{name}.png"
        path.write_bytes(b"x")
        items.append((path, FileInfo(filename=f"{name}.png", size_bytes=1, content_type="image/png")))
    return items


def test_failure_in_the_middle_keeps_order(tmp_path):
    items = make_items(tmp_path, ["a", "b", "c"])
    recognizer = FakeRecognizer(
        results={"a": make_result("alpha beta", 80.0), "c": make_result("gamma", 70.0)},
        failures={"b": EngineError("OCR processing failed: corrupted image")},
    )

    outcomes = extract_batch(items, RecognitionRequest(), recognizer)

    assert [o.index for o in outcomes] == [0, 1, 2]
    assert [o.success for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[0], BatchItemSuccess)
    assert outcomes[0].text == "alpha beta"
    assert outcomes[0].word_count == 2
    assert outcomes[0].file_info.filename == "a.png"
    assert outcomes[1] == BatchItemFailure(1, items[1][1], "OCR processing failed: corrupted image")
    assert outcomes[2].confidence == 70.0
    assert recognizer.calls == ["a", "b", "c"]


def test_missing_upload_is_item_failure(tmp_path):
    items = make_items(tmp_path, ["a", "b"])
    items[0][0].unlink()

    outcomes = extract_batch(items, RecognitionRequest(), FakeRecognizer())

    assert [o.success for o in outcomes] == [False, True]


def test_language_checked_before_any_item(tmp_path):
    recognizer = FakeRecognizer()

    with pytest.raises(UnsupportedLanguageError):
        extract_batch(make_items(tmp_path, ["a"]), RecognitionRequest(language="zzz"), recognizer)

    assert recognizer.calls == []


def test_uploads_are_not_deleted(tmp_path):
    items = make_items(tmp_path, ["a", "b"])

    extract_batch(items, RecognitionRequest(), FakeRecognizer())

    assert all(path.exists() for path, _ in items)


def test_report_summary(tmp_path):
    items = make_items(tmp_path, ["a", "b", "c", "d"])
    recognizer = FakeRecognizer(failures={"d": EngineError("bad")})

    report = run_batch_report(items, RecognitionRequest(language="deu"), recognizer)

    assert report.summary.total_files == 4
    assert report.summary.successful_files == 3
    assert report.summary.failed_files == 1
    assert report.summary.language == "deu"
    assert report.summary.processing_time_ms >= 0


def test_empty_batch(tmp_path):
    report = run_batch_report([], RecognitionRequest(), FakeRecognizer())

    assert report.items == []
    assert report.summary.total_files == 0
