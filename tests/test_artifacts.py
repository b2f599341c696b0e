"""Тесты ArtifactScope: удаление файлов запуска на любом пути выхода."""

from pathlib import Path

import pytest

from ocr_api.services.artifacts import ArtifactScope, new_run_id


def test_run_ids_are_unique():
    ids = {new_run_id("pdf") for _ in range(100)}
    assert len(ids) == 100
    assert all(run_id.startswith("pdf_") for run_id in ids)


def test_scope_removes_tracked_and_prefixed_files(temp_dir):
    foreign = temp_dir / "other-request.png"
    foreign.write_bytes(b"keep")

    with ArtifactScope(temp_dir, "pdf") as scope:
        tracked = temp_dir / f"{scope.run_id}-1.png"
        tracked.write_bytes(b"1")
        scope.track([tracked])
        # не зарегистрирован, но с префиксом запуска
        (temp_dir / f"{scope.run_id}-2.png").write_bytes(b"2")
        created = scope.path_for(".png", "image")
        created.write_bytes(b"3")

    assert sorted(p.name for p in temp_dir.iterdir()) == ["other-request.png"]


def test_scope_cleans_up_on_exception(temp_dir):
    with pytest.raises(RuntimeError):
        with ArtifactScope(temp_dir, "pdf") as scope:
            scope.path_for(".png").write_bytes(b"1")
            raise RuntimeError("boom")

    assert list(temp_dir.iterdir()) == []


def test_scope_creates_directory(tmp_path):
    directory = tmp_path / "nested" / "temp"
    with ArtifactScope(directory) as scope:
        scope.path_for(".txt").write_text("x")
        assert directory.is_dir()
    assert list(directory.iterdir()) == []


def test_release_counts_and_tolerates_missing_files(temp_dir):
    scope = ArtifactScope(temp_dir, "pdf")
    scope.path_for(".png").write_bytes(b"1")
    scope.track([temp_dir / "never-created.png"])

    assert scope.release() == 1
    assert scope.cleanup_failures == []


def test_cleanup_failure_is_recorded_not_raised(temp_dir, monkeypatch):
    original_unlink = Path.unlink

    def flaky_unlink(self, *args, **kwargs):
        if self.name.endswith("-locked.png"):
            raise PermissionError("locked")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", flaky_unlink)

    with ArtifactScope(temp_dir, "pdf") as scope:
        scope.path_for(".png", "locked").write_bytes(b"1")
        scope.path_for(".png", "free").write_bytes(b"2")

    assert len(scope.cleanup_failures) == 1
    assert scope.cleanup_failures[0].code == "cleanup_error"
    assert [p.name for p in temp_dir.iterdir()] == [f"{scope.run_id}-locked.png"]
