"""
Encoding - поиск битой кодировки в строках переводов.

Типичный случай: UTF-8 текст, прочитанный как MacRoman/cp1252 и сохранённый
снова в UTF-8. Кириллица "Далее" превращается в "–î–∞–ª–µ–µ".
Такой текст обратимо кодируется в однобайтовую кодировку и декодируется
как корректный UTF-8 - по этому признаку он и определяется.
"""

import copy
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from .tree import join_path, set_path, walk_leaves

# При равной оценке побеждает более ранняя кодировка
MOJIBAKE_CODECS = ("mac_roman", "cp1252", "latin-1")

# Комбинирующие, управляющие и неназначенные символы - признак неверной кодировки
SUSPICIOUS_CATEGORIES = {"Mn", "Mc", "Me", "Cc", "Co", "Cn", "Cs"}

REPLACEMENT_CHAR = "\ufffd"
ALLOWED_CONTROL = {"\n", "\r", "\t"}


def repair_mojibake(text: str) -> Optional[str]:
    """
    Пытается восстановить исходный текст.

    Returns:
        Исправленная строка или None, если текст не похож на mojibake.
    """
    if not isinstance(text, str) or text.isascii():
        return None

    candidates = []
    for codec in MOJIBAKE_CODECS:
        try:
            fixed = text.encode(codec).decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
        if fixed != text:
            candidates.append(fixed)

    if not candidates:
        return None
    # "CafÃ©" декодируется и через MacRoman, но с комбинирующим символом
    return min(candidates, key=_suspicious_count)


def _suspicious_count(text: str) -> int:
    return sum(1 for char in text if unicodedata.category(char) in SUSPICIOUS_CATEGORIES)


def find_encoding_problem(text: str) -> Optional[str]:
    """Возвращает описание проблемы с кодировкой или None."""
    if not isinstance(text, str):
        return None

    if REPLACEMENT_CHAR in text:
        return "Символ замены U+FFFD (потеря данных при декодировании)"

    for char in text:
        if char in ALLOWED_CONTROL:
            continue
        if unicodedata.category(char) == "Cc":
            return f"Непечатаемый управляющий символ U+{ord(char):04X}"

    fixed = repair_mojibake(text)
    if fixed is not None:
        preview = fixed[:40] + ("..." if len(fixed) > 40 else "")
        return f"Похоже на битую кодировку (mojibake), вероятно: '{preview}'"

    return None


def repair_tree(tree: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Исправляет mojibake во всех листьях дерева.

    Returns:
        (новое дерево, пути исправленных листьев)
    """
    repaired = copy.deepcopy(tree)
    fixed_paths = []
    for path, value in walk_leaves(tree):
        fixed = repair_mojibake(value)
        if fixed is not None:
            set_path(repaired, path, fixed)
            fixed_paths.append(join_path(path))
    return repaired, fixed_paths
