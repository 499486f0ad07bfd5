"""
Config - настройки locale_patch.

Источники (по возрастанию приоритета):
1. Значения по умолчанию (Settings)
2. YAML-файл (locale_patch.yaml в текущей директории или --config)
3. Переменные окружения LOCALE_PATCH_* (в т.ч. из .env)
4. Флаги CLI (применяет manager)
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "locale_patch.yaml"

ENV_OVERRIDES = {
    "LOCALE_PATCH_LOCALES_DIR": "locales_dir",
    "LOCALE_PATCH_REFERENCE": "reference_locale",
}


@dataclass
class Settings:
    """Настройки чтения/записи локалей и проверок."""
    locales_dir: str = "src/locales"
    reference_locale: str = "en"
    indent: int = 2
    trailing_newline: bool = True
    ensure_ascii: bool = False
    sort_keys: bool = False
    backup: bool = True
    reject_mojibake: bool = True
    neutral_max_length: int = 3

    @property
    def locales_path(self) -> Path:
        return Path(self.locales_dir)

    def update(self, values: Mapping[str, Any], source: str = "") -> None:
        """Применяет известные ключи, неизвестные пропускает с предупреждением."""
        known = {f.name: f.type for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                logger.warning("Неизвестный параметр '%s' в %s - пропущен", key, source or "настройках")
                continue
            if value is None:
                continue
            current = getattr(self, key)
            if isinstance(current, bool):
                value = _to_bool(value)
            elif isinstance(current, int):
                value = int(value)
            else:
                value = str(value)
            setattr(self, key, value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path}: невалидный YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: ожидался YAML-словарь, получен {type(data).__name__}")
    # Допускаем секцию locale_patch: {...} в общем конфиге проекта
    section = data.get("locale_patch")
    return section if isinstance(section, dict) else data


def load_settings(config_path: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Собирает настройки из YAML и окружения.

    Args:
        config_path: Явный путь к YAML. Если указан и не существует - FileNotFoundError.
        environ: Окружение (по умолчанию os.environ после load_dotenv()).
    """
    settings = Settings()

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Конфиг не найден: {path}")
    else:
        path = Path.cwd() / DEFAULT_CONFIG_NAME

    if path.exists():
        settings.update(_read_yaml(path), source=str(path))
        logger.info("Конфигурация загружена из %s", path)
    else:
        logger.debug("Конфиг %s не найден, используются значения по умолчанию", path)

    if environ is None:
        load_dotenv()
        environ = os.environ

    overrides = {
        attr: environ[name] for name, attr in ENV_OVERRIDES.items() if environ.get(name)
    }
    if overrides:
        logger.debug("Переопределения из окружения: %s", overrides)
        settings.update(overrides, source="окружении")

    return settings
