"""
Временные файлы пайплайна (растеризованные страницы, предобработанные изображения).

Каждый запуск пайплайна открывает ArtifactScope. Все файлы запуска
получают уникальный префикс run_id и удаляются при выходе из scope,
как при успехе, так и при исключении. Ошибки удаления логируются
и не пробрасываются.
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union

from ocr_api.exceptions import ResourceError

logger = logging.getLogger(__name__)


def new_run_id(kind: str) -> str:
    """
    Генерирует уникальный идентификатор запуска.

    Формат: <kind>_<YYYYmmddHHMMSS>_<12 hex>. Уникален между
    параллельными запросами, которые пишут в общую директорию.
    """
    return f"{kind}_{time.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:12]}"


class ArtifactScope:
    """
    Владелец временных файлов одного запуска пайплайна.

    Пример:
        with ArtifactScope(temp_dir, "pdf") as scope:
            paths = rasterize(path, dpi, scope.directory, scope.run_id)
            scope.track(paths)
            ...
        # здесь файлов запуска уже нет

    Attributes:
        directory: общая директория временных файлов
        run_id: префикс имён файлов этого запуска
        cleanup_failures: ошибки удаления (ResourceError), для диагностики
    """

    def __init__(self, directory: Union[str, Path], kind: str = "run"):
        self.directory = Path(directory)
        self.run_id = new_run_id(kind)
        self.cleanup_failures: list[ResourceError] = []
        self._paths: list[Path] = []

    def __enter__(self) -> "ArtifactScope":
        self.directory.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def track(self, paths: Iterable[Union[str, Path]]) -> None:
        """Регистрирует файлы, созданные этим запуском."""
        self._paths.extend(Path(p) for p in paths)

    def path_for(self, suffix: str, name: Optional[str] = None) -> Path:
        """
        Выдаёт путь для нового временного файла и сразу регистрирует его.

        Args:
            suffix: расширение, например ".png"
            name: необязательная часть имени после run_id

        Returns:
            Path: путь внутри directory с префиксом run_id
        """
        stem = f"{self.run_id}-{name}" if name else f"{self.run_id}-{len(self._paths)}"
        path = self.directory / f"{stem}{suffix}"
        self._paths.append(path)
        return path

    def release(self) -> int:
        """
        Удаляет все файлы запуска.

        Удаляются зарегистрированные файлы и любые файлы с префиксом run_id
        (например, оставшиеся после сбоя растеризации на середине документа).

        Returns:
            int: количество удалённых файлов
        """
        candidates = dict.fromkeys(self._paths)
        if self.directory.is_dir():
            candidates.update(dict.fromkeys(self.directory.glob(f"{self.run_id}*")))

        removed = 0
        for path in candidates:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                failure = ResourceError(
                    f"Failed to remove temporary file {path.name}: {e}",
                    details={"path": str(path)},
                )
                self.cleanup_failures.append(failure)
                logger.warning(failure.message)

        self._paths.clear()
        if removed:
            logger.debug(f"Удалено временных файлов: {removed} (run_id={self.run_id})")
        return removed
