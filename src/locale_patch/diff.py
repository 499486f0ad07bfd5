"""
Diff - подсчёт непереведённых ключей относительно эталонной локали.

Обход идёт по листьям эталона (reference). Лист считается непереведённым,
если в целевой локали его нет, значение пустое, или значение совпадает
с эталонным. Ключи, которые есть только в целевой локали, в подсчёт
не входят (для них есть extra_keys).
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from .tree import MISSING, is_branch, join_path, walk_leaves

# Совпадающие с эталоном значения такой длины и короче ("OK", "VS", "Set")
# одинаково пишутся в большинстве языков и не считаются непереведёнными.
NEUTRAL_MAX_LENGTH = 3

ROOT_SECTION = "(root)"


@dataclass
class LeafPair:
    """Лист эталона и соответствующее значение целевой локали."""
    parts: Tuple[str, ...]
    ref_value: Any
    value: Any
    untranslated: bool

    @property
    def path(self) -> str:
        return join_path(self.parts)

    @property
    def missing(self) -> bool:
        return self.value is MISSING or self.value is None or is_branch(self.value)


def is_untranslated(ref_value: Any, value: Any,
                    neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> bool:
    """Проверяет один лист целевой локали против эталонного значения."""
    if value is MISSING or value is None or value == "":
        return True
    if is_branch(value):
        # Вместо строки оказался узел - перевода листа нет
        return True
    if value == ref_value:
        if isinstance(value, str) and len(value) <= neutral_max_length:
            return False
        return True
    return False


def walk_pairs(reference: Mapping, target: Any,
               neutral_max_length: int = NEUTRAL_MAX_LENGTH,
               prefix: Tuple[str, ...] = ()) -> Iterator[LeafPair]:
    """Параллельный обход reference/target по листьям эталона."""
    target = target if is_branch(target) else {}
    for key, ref_value in reference.items():
        parts = prefix + (key,)
        value = target.get(key, MISSING)
        if is_branch(ref_value):
            yield from walk_pairs(ref_value, value, neutral_max_length, parts)
        else:
            yield LeafPair(parts, ref_value, value,
                           is_untranslated(ref_value, value, neutral_max_length))


def count_untranslated(reference: Mapping, target: Mapping,
                       neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> int:
    """Количество непереведённых листьев target относительно reference."""
    return sum(1 for pair in walk_pairs(reference, target, neutral_max_length)
               if pair.untranslated)


def untranslated_paths(reference: Mapping, target: Mapping,
                       neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> List[str]:
    """Пути непереведённых листьев в порядке обхода эталона."""
    return [pair.path for pair in walk_pairs(reference, target, neutral_max_length)
            if pair.untranslated]


def find_untranslated(reference: Mapping, target: Mapping,
                      neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> Dict[str, Any]:
    """
    Возвращает поддерево эталона, содержащее только непереведённые листья.

    Значения листьев - тексты эталона. Пустые ветки в результат не попадают,
    так что результат можно сразу отдавать переводчику и потом применять
    как patch.
    """
    target = target if is_branch(target) else {}
    result: Dict[str, Any] = {}

    for key, ref_value in reference.items():
        value = target.get(key, MISSING)
        if is_branch(ref_value):
            nested = find_untranslated(ref_value, value, neutral_max_length)
            if nested:
                result[key] = nested
        elif is_untranslated(ref_value, value, neutral_max_length):
            result[key] = ref_value

    return result


def count_keys(tree: Mapping) -> int:
    """Количество листьев дерева."""
    return sum(1 for _ in walk_leaves(tree))


def section_breakdown(reference: Mapping, target: Mapping,
                      neutral_max_length: int = NEUTRAL_MAX_LENGTH
                      ) -> Dict[str, Tuple[int, int]]:
    """
    Разбивка по секциям верхнего уровня.

    Returns:
        Dict[section, (untranslated, total)]; листья в корне попадают
        в секцию ROOT_SECTION.
    """
    breakdown: Dict[str, List[int]] = {}
    for pair in walk_pairs(reference, target, neutral_max_length):
        section = pair.parts[0] if len(pair.parts) > 1 else ROOT_SECTION
        counts = breakdown.setdefault(section, [0, 0])
        counts[1] += 1
        if pair.untranslated:
            counts[0] += 1
    return {section: (counts[0], counts[1]) for section, counts in breakdown.items()}


def extra_keys(reference: Mapping, target: Mapping) -> List[str]:
    """Пути листьев target, которых нет в reference (устаревшие ключи)."""
    ref_keys = {parts for parts, _ in walk_leaves(reference)}
    return [join_path(parts) for parts, _ in walk_leaves(target) if parts not in ref_keys]


def coverage_percent(reference: Mapping, target: Mapping,
                     neutral_max_length: int = NEUTRAL_MAX_LENGTH) -> float:
    """Процент переведённых листьев эталона."""
    total = count_keys(reference)
    if not total:
        return 100.0
    missing = count_untranslated(reference, target, neutral_max_length)
    return round((total - missing) / total * 100, 1)


def changed_keys(before: Mapping, after: Mapping) -> List[str]:
    """Пути листьев after, которые добавлены или изменены относительно before."""
    old = dict(walk_leaves(before))
    return [join_path(parts) for parts, value in walk_leaves(after)
            if old.get(parts, MISSING) != value]
