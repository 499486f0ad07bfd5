#!/usr/bin/env python3
"""
Catalog - чтение и запись файлов локалей.

Хранит переводы в JSON-файлах: {locales_dir}/{locale}.json
Формат: вложенный JSON-объект {"section": {"key": "текст"}}

Поддерживает:
- Загрузка/сохранение (indent=2, UTF-8 без \\u-экранирования, перевод строки в конце)
- Бэкап перед перезаписью ({locale}.backup.json)
- Атомарная запись через временный файл + os.replace
- Список доступных локалей
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings
from .errors import LocaleFileError
from .tree import sort_tree

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


class LocaleCatalog:
    """
    Каталог файлов локалей одного приложения.

    Структура файлов:
        src/locales/
            en.json         - Эталон (reference)
            fr.json         - Французский
            fr.backup.json  - Копия до последней записи
    """

    def __init__(self, locales_dir: Path, settings: Optional[Settings] = None):
        self.locales_dir = Path(locales_dir)
        self.settings = settings or Settings(locales_dir=str(locales_dir))

    def path_for(self, locale: str) -> Path:
        return self.locales_dir / f"{locale}.json"

    def backup_path_for(self, locale: str) -> Path:
        return self.locales_dir / f"{locale}{BACKUP_SUFFIX}.json"

    def exists(self, locale: str) -> bool:
        return self.path_for(locale).exists()

    def load(self, locale: str, missing_ok: bool = False) -> Dict[str, Any]:
        """
        Загружает дерево переводов локали.

        Args:
            locale: Код языка (en, fr, es, ...)
            missing_ok: Вернуть {} вместо FileNotFoundError, если файла нет

        Raises:
            FileNotFoundError: файла нет и missing_ok=False
            LocaleFileError: файл не JSON или корень не объект
        """
        path = self.path_for(locale)
        if not path.exists():
            if missing_ok:
                logger.debug("Файл локали %s не найден, начинаем с пустого дерева", path)
                return {}
            raise FileNotFoundError(f"Файл локали не найден: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise LocaleFileError(path, f"невалидный JSON: {e.msg} (строка {e.lineno}, колонка {e.colno})") from e
        except UnicodeDecodeError as e:
            raise LocaleFileError(path, f"файл не в UTF-8: {e.reason}") from e

        if not isinstance(data, dict):
            raise LocaleFileError(path, f"ожидался JSON-объект, получен {type(data).__name__}")

        logger.debug("Загружена локаль %s (%s)", locale, path)
        return data

    def dumps(self, tree: Dict[str, Any]) -> str:
        """Сериализует дерево так же, как оно будет записано на диск."""
        if self.settings.sort_keys:
            tree = sort_tree(tree)
        text = json.dumps(tree, ensure_ascii=self.settings.ensure_ascii,
                          indent=self.settings.indent)
        if self.settings.trailing_newline:
            text += "\n"
        return text

    def save(self, locale: str, tree: Dict[str, Any]) -> Path:
        """
        Сохраняет дерево переводов локали.

        Перед перезаписью существующего файла делает бэкап (если включён),
        запись идёт во временный файл рядом и затем атомарно заменяет целевой.
        """
        path = self.path_for(locale)
        self.locales_dir.mkdir(parents=True, exist_ok=True)

        # Бэкап
        if path.exists() and self.settings.backup:
            backup_path = self.backup_path_for(locale)
            shutil.copy2(path, backup_path)
            logger.debug("Бэкап %s -> %s", path.name, backup_path.name)

        text = self.dumps(tree)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{locale}.", suffix=".tmp",
                                        dir=str(self.locales_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
            # mkstemp создаёт файл с правами 0600
            if path.exists():
                shutil.copymode(path, tmp_name)
            else:
                os.chmod(tmp_name, 0o666 & ~_current_umask())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Локаль %s сохранена: %s", locale, path)
        return path

    def list_locales(self) -> List[str]:
        """Возвращает список доступных локалей (без бэкапов и служебных файлов)."""
        if not self.locales_dir.exists():
            return []
        locales = []
        for path in self.locales_dir.glob("*.json"):
            name = path.stem
            if name.startswith(("_", ".")) or name.endswith(BACKUP_SUFFIX):
                continue
            locales.append(name)
        return sorted(locales)

    def load_all(self) -> Dict[str, Dict[str, Any]]:
        """Загружает все локали каталога."""
        return {locale: self.load(locale) for locale in self.list_locales()}


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask
