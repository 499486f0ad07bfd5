"""
Patches - загрузка патчей переводов из внешних файлов.

Патч - частичное дерево переводов: только те ключи, которые нужно добавить
или исправить. Поддерживаемые форматы файла (.json / .yaml / .yml):

1. Дерево одной локали (вложенное, плоское с dot-ключами или смешанное):
       {"common": {"cancel": "Annuler"}}
       {"common.cancel": "Annuler"}
   Локаль берётся из --locale или из имени файла (fr.json, fr.common.yaml).

2. Конверт одной локали:
       {"locale": "fr", "translations": {...}}

3. Бандл нескольких локалей:
       {"locales": {"fr": {...}, "es": {...}}}

Память переводов (translation memory) - плоский словарь
{"текст эталона": "перевод"}, применяется только к непереведённым листьям.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from .diff import NEUTRAL_MAX_LENGTH, count_keys, is_untranslated
from .errors import KeyConflictError, PatchFormatError
from .tree import MISSING, deep_merge, is_branch, unflatten

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
SUPPORTED_SUFFIXES = (".json",) + YAML_SUFFIXES

# en, fr, pt-BR, zh_Hans
LOCALE_CODE_RE = re.compile(r"^[a-z]{2,3}(?:[-_][A-Za-z0-9]{2,4})?$")

# Служебные поля конверта/бандла, которые не являются переводами
ENVELOPE_META = {"description", "author", "source"}


class PatchLoader(yaml.SafeLoader):
    """
    SafeLoader с булевыми только true/false.

    В YAML 1.1 yes/no/on/off читаются как bool, а в переводах это обычные
    ключи и значения (common.yes, "No" в испанском).
    """


PatchLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
PatchLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


@dataclass
class Patch:
    """Патч для одной локали."""
    locale: str
    tree: Dict[str, Any]
    source: Optional[Path] = None

    @property
    def key_count(self) -> int:
        return count_keys(self.tree)


def read_data_file(path: Path) -> Any:
    """Читает JSON или YAML файл."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Файл не найден: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise PatchFormatError(path, f"неподдерживаемое расширение '{suffix}' "
                                     f"(ожидается {', '.join(SUPPORTED_SUFFIXES)})")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if suffix in YAML_SUFFIXES:
                return yaml.load(f, Loader=PatchLoader) or {}
            return json.load(f)
    except json.JSONDecodeError as e:
        raise PatchFormatError(path, f"невалидный JSON: {e.msg} (строка {e.lineno})") from e
    except yaml.YAMLError as e:
        raise PatchFormatError(path, f"невалидный YAML: {e}") from e
    except UnicodeDecodeError as e:
        raise PatchFormatError(path, f"файл не в UTF-8: {e.reason}") from e


def write_data_file(path: Path, data: Mapping, indent: int = 2) -> None:
    """Записывает словарь в JSON или YAML (по расширению)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            yaml.safe_dump(dict(data), f, allow_unicode=True, sort_keys=False,
                           default_flow_style=False)
        else:
            json.dump(data, f, ensure_ascii=False, indent=indent)
            f.write("\n")


def locale_from_filename(path: Path) -> Optional[str]:
    """fr.json -> fr, fr.common.yaml -> fr, pt-BR.json -> pt-BR."""
    candidate = Path(path).name.split(".", 1)[0]
    return candidate if LOCALE_CODE_RE.match(candidate) else None


def _as_tree(data: Any, path: Optional[Path], what: str) -> Dict[str, Any]:
    if not is_branch(data):
        raise PatchFormatError(path, f"{what}: ожидался объект, получен {type(data).__name__}")
    bad_key = _find_non_string_key(data)
    if bad_key is not MISSING:
        raise PatchFormatError(path, f"{what}: ключ {bad_key!r} не строка "
                                     f"({type(bad_key).__name__}), возьмите его в кавычки")
    try:
        return unflatten(data)
    except KeyConflictError as e:
        raise PatchFormatError(path, f"{what}: {e}") from e


def _find_non_string_key(data: Mapping) -> Any:
    for key, value in data.items():
        if not isinstance(key, str):
            return key
        if is_branch(value):
            bad_key = _find_non_string_key(value)
            if bad_key is not MISSING:
                return bad_key
    return MISSING


def _is_envelope(data: Mapping, body: str, *extra: str) -> bool:
    """Конверт: есть ветка body и нет других ключей, кроме служебных."""
    if not is_branch(data.get(body)):
        return False
    return set(data) <= {body, *extra} | ENVELOPE_META


def parse_patch(data: Any, source: Optional[Path] = None,
                locale: Optional[str] = None) -> List[Patch]:
    """
    Разбирает содержимое файла патча.

    Args:
        data: Загруженный JSON/YAML
        source: Путь (для сообщений и определения локали по имени)
        locale: Явная локаль (--locale); для бандла - фильтр

    Returns:
        Список патчей (по одному на локаль)
    """
    if not is_branch(data):
        raise PatchFormatError(source, f"ожидался объект, получен {type(data).__name__}")

    # Бандл нескольких локалей
    if _is_envelope(data, "locales"):
        bundle = data["locales"]
        if locale:
            if locale not in bundle:
                raise PatchFormatError(
                    source, f"в бандле нет локали '{locale}' (есть: {', '.join(bundle)})"
                )
            bundle = {locale: bundle[locale]}
        return [
            Patch(code, _as_tree(tree, source, f"locales.{code}"), source)
            for code, tree in bundle.items()
        ]

    # Конверт одной локали
    if _is_envelope(data, "translations", "locale"):
        declared = data.get("locale")
        if declared and locale and declared != locale:
            raise PatchFormatError(
                source, f"локаль в файле '{declared}' не совпадает с --locale '{locale}'"
            )
        code = locale or declared or (locale_from_filename(source) if source else None)
        if not code:
            raise PatchFormatError(source, "не удалось определить локаль: укажите \"locale\" или --locale")
        return [Patch(code, _as_tree(data["translations"], source, "translations"), source)]

    # Просто дерево
    code = locale or (locale_from_filename(source) if source else None)
    if not code:
        raise PatchFormatError(
            source, "не удалось определить локаль по имени файла: укажите --locale"
        )
    return [Patch(code, _as_tree(data, source, "patch"), source)]


def load_patch_file(path: Path, locale: Optional[str] = None) -> List[Patch]:
    """Загружает файл патча (JSON/YAML)."""
    path = Path(path)
    patches = parse_patch(read_data_file(path), source=path, locale=locale)
    for patch in patches:
        logger.debug("Патч %s: локаль %s, %s ключей", path.name, patch.locale, patch.key_count)
    return patches


def group_by_locale(patches: Iterable[Patch]) -> Dict[str, Dict[str, Any]]:
    """Объединяет патчи по локалям в порядке следования (поздние побеждают)."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for patch in patches:
        grouped[patch.locale] = deep_merge(grouped.get(patch.locale, {}), patch.tree)
    return grouped


# ── Память переводов ──

def load_translation_memory(path: Path) -> Dict[str, str]:
    """
    Загружает память переводов {"текст эталона": "перевод"}.

    Пустые ключи и пустые переводы пропускаются.
    """
    path = Path(path)
    data = read_data_file(path)
    if not is_branch(data):
        raise PatchFormatError(path, f"ожидался объект, получен {type(data).__name__}")

    memory: Dict[str, str] = {}
    for source_text, translation in data.items():
        if not isinstance(translation, str):
            raise PatchFormatError(
                path, f"перевод для '{source_text}' должен быть строкой, "
                      f"получен {type(translation).__name__}"
            )
        if not source_text or not translation:
            continue
        memory[str(source_text)] = translation

    logger.debug("Память переводов %s: %s записей", path.name, len(memory))
    return memory


def translate_from_memory(reference: Mapping, target: Mapping, memory: Mapping[str, str],
                          neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> Dict[str, Any]:
    """
    Строит патч из памяти переводов.

    Для каждого непереведённого листа target, чей текст в reference есть
    в memory, патч получает перевод из memory. Переведённые листья
    не трогаются.
    """
    target = target if is_branch(target) else {}
    result: Dict[str, Any] = {}

    for key, ref_value in reference.items():
        value = target.get(key, MISSING)
        if is_branch(ref_value):
            nested = translate_from_memory(ref_value, value, memory, neutral_max_length)
            if nested:
                result[key] = nested
        elif isinstance(ref_value, str) and ref_value in memory:
            if is_untranslated(ref_value, value, neutral_max_length):
                result[key] = memory[ref_value]

    return result
