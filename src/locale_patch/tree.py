"""
Tree - операции над деревьями переводов.

Дерево переводов: вложенный dict, листья - строки (иногда числа/списки),
узлы - пространства имён (services.coaching.title).

Содержит:
- deep_merge: рекурсивное слияние base + patch (patch побеждает на листьях)
- flatten_tree / unflatten: dot-notation <-> вложенная структура
- walk_leaves / iter_leaves / get_path / set_path: обход и доступ по пути

Путь - строка "a.b.c" или кортеж ("a", "b", "c"). Кортеж нужен для ключей,
которые сами содержат точку (например "2.0-3.0" в секции уровней игры).
"""

import copy
import re
from typing import Any, Dict, Iterator, Mapping, Tuple, Union

from .errors import KeyConflictError

SEPARATOR = "."

# Маркер отсутствующего ключа (None - допустимое значение листа)
MISSING = object()

# Сегмент dot-ключа: идентификатор (common, q1_opt1, emailLogin, club-admin)
_SEGMENT_RE = re.compile(r"^[A-Za-z_$][\w$-]*$")

KeyPath = Union[str, Tuple[str, ...]]


def is_branch(value: Any) -> bool:
    """Узел дерева - это mapping. Списки считаются листьями."""
    return isinstance(value, Mapping)


def deep_merge(base: Mapping, patch: Mapping) -> Dict[str, Any]:
    """
    Рекурсивно объединяет base и patch в новый словарь.

    Правила:
    - значение-mapping из patch сливается с base[key] рекурсивно
      (если base[key] не mapping - сливается с пустым словарём);
    - любое другое значение из patch (строка, число, список, None)
      перезаписывает base[key] безусловно;
    - ключи, которых нет в patch, переносятся из base без изменений.

    Порядок ключей base сохраняется, новые ключи добавляются в порядке patch.
    Входные данные не изменяются.
    """
    result: Dict[str, Any] = {}
    for key, value in base.items():
        result[key] = copy.deepcopy(value)

    for key, value in patch.items():
        if is_branch(value):
            current = result.get(key)
            result[key] = deep_merge(current if is_branch(current) else {}, value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def join_path(parts: Tuple[str, ...]) -> str:
    return SEPARATOR.join(str(p) for p in parts)


def _parts(path: KeyPath) -> Tuple[str, ...]:
    if isinstance(path, tuple):
        return path
    return tuple(str(path).split(SEPARATOR))


def walk_leaves(tree: Mapping, prefix: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], Any]]:
    """Обходит листья дерева, возвращая пары (путь-кортеж, значение)."""
    for key, value in tree.items():
        path = prefix + (key,)
        if is_branch(value):
            yield from walk_leaves(value, path)
        else:
            yield path, value


def iter_leaves(tree: Mapping) -> Iterator[Tuple[str, Any]]:
    """Обходит листья дерева, возвращая пары ("a.b.c", значение)."""
    for parts, value in walk_leaves(tree):
        yield join_path(parts), value


def flatten_tree(tree: Mapping) -> Dict[str, Any]:
    """Преобразует вложенное дерево в плоский dict с dot-notation ключами."""
    return dict(iter_leaves(tree))


def split_key(key: str) -> Tuple[str, ...]:
    """
    Разбивает dot-ключ на сегменты.

    "common.save" -> ("common", "save"); ключ, сегменты которого
    не похожи на идентификаторы ("2.0-3.0", "5.0+"), остаётся целым.
    """
    key = str(key)
    parts = key.split(SEPARATOR)
    if len(parts) > 1 and all(_SEGMENT_RE.match(p) for p in parts):
        return tuple(parts)
    return (key,)


def unflatten(flat: Mapping) -> Dict[str, Any]:
    """
    Разворачивает dot-notation ключи во вложенную структуру.

    Поддерживает смешанный формат: {"common.save": "...", "leagues": {...}}.
    Ключи без точки остаются на своём уровне, вложенные mapping-значения
    разворачиваются рекурсивно. При совпадении путей двух листьев побеждает
    более поздний ключ.

    Raises:
        KeyConflictError: путь задан и как лист, и как раздел
            ({"common": "x", "common.save": "y"}).
    """
    result: Dict[str, Any] = {}

    for key, value in flat.items():
        value = unflatten(value) if is_branch(value) else copy.deepcopy(value)

        parts = split_key(key)
        node = result
        for depth, part in enumerate(parts[:-1], start=1):
            existing = node.get(part, MISSING)
            if existing is MISSING:
                node[part] = {}
            elif not is_branch(existing):
                raise KeyConflictError(join_path(parts[:depth]))
            node = node[part]

        _put(node, parts[-1], value, parts[:-1])

    return result


def _put(node: Dict[str, Any], key: str, value: Any, prefix: Tuple[str, ...]) -> None:
    """Кладёт значение в свежесозданное дерево (unflatten), сливая разделы."""
    existing = node.get(key, MISSING)
    if existing is MISSING:
        node[key] = value
    elif is_branch(existing) and is_branch(value):
        for child_key, child_value in value.items():
            _put(existing, child_key, child_value, prefix + (key,))
    elif is_branch(existing) or is_branch(value):
        raise KeyConflictError(join_path(prefix + (key,)))
    else:
        node[key] = value


def get_path(tree: Mapping, path: KeyPath, default: Any = MISSING) -> Any:
    """Возвращает значение по пути или default, если пути нет."""
    node: Any = tree
    for part in _parts(path):
        if not is_branch(node) or part not in node:
            return default
        node = node[part]
    return node


def set_path(tree: Dict[str, Any], path: KeyPath, value: Any) -> None:
    """Записывает значение по пути, создавая промежуточные узлы."""
    parts = _parts(path)
    node = tree
    for part in parts[:-1]:
        if not is_branch(node.get(part)):
            node[part] = {}
        node = node[part]
    node[parts[-1]] = value


def sort_tree(tree: Mapping) -> Dict[str, Any]:
    """Рекурсивная сортировка дерева по ключам."""
    sorted_tree: Dict[str, Any] = {}
    for key in sorted(tree.keys()):
        value = tree[key]
        sorted_tree[key] = sort_tree(value) if is_branch(value) else value
    return sorted_tree
