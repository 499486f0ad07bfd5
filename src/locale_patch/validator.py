#!/usr/bin/env python3
"""
Валидатор переводов: проверка патчей перед применением и аудит каталога локалей.

Правила:
1. Структура (JSON Schema дерева переводов: листья - строки, узлы - объекты)
2. Полнота (все ключи эталона есть в локали и переведены)
3. Совпадение плейсхолдеров {{var}} с эталоном
4. Пустые значения
5. Битая кодировка (mojibake, U+FFFD, управляющие символы)
6. Аномалии длины (>3x разница с эталоном)
7. Лишние ключи (нет в эталоне) и конфликты лист/узел
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from jsonschema import Draft7Validator
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .diff import NEUTRAL_MAX_LENGTH, count_keys, extra_keys, walk_pairs
from .encoding import find_encoding_problem
from .tree import MISSING, get_path, is_branch, iter_leaves, join_path, walk_leaves

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

# Дерево переводов: объект, значения которого - строки или такие же объекты
TRANSLATION_TREE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": {
        "anyOf": [
            {"type": "string"},
            {"type": "array", "items": {"type": "string"}},
            {"$ref": "#"},
        ]
    },
}

LENGTH_RATIO_THRESHOLD = 3.0
# Короткие строки дают ложные срабатывания по длине
LENGTH_MIN_REFERENCE = 8


class Severity(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass
class Issue:
    severity: Severity
    key: str
    language: str
    message: str


def extract_placeholders(text: Any) -> set:
    if not isinstance(text, str):
        return set()
    return set(PLACEHOLDER_RE.findall(text))


def check_schema(tree: Any, language: str, severity: Severity = Severity.ERROR) -> List[Issue]:
    """Проверка 1: структура дерева по JSON Schema."""
    if not is_branch(tree):
        return [Issue(Severity.ERROR, "<root>", language,
                      f"Корень должен быть объектом, получен {type(tree).__name__}")]

    validator = Draft7Validator(TRANSLATION_TREE_SCHEMA)
    issues = []
    seen = set()
    for error in validator.iter_errors(tree):
        for leaf_error in _leaf_errors(error):
            path = list(leaf_error.absolute_path)
            value = _value_at(tree, path)
            if is_branch(value) or isinstance(value, list):
                # Ошибка внутри узла или списка - её покажет более глубокий путь
                continue
            key = ".".join(str(p) for p in path)
            if key in seen:
                continue
            seen.add(key)
            issues.append(Issue(
                severity, key, language,
                f"Значение должно быть строкой или объектом, получен {type(value).__name__}"
            ))
    return sorted(issues, key=lambda i: i.key)


def _leaf_errors(error):
    """anyOf прячет настоящие ошибки в context - спускаемся до самых глубоких."""
    if error.context:
        for sub in error.context:
            yield from _leaf_errors(sub)
    else:
        yield error


def _value_at(tree: Mapping, path: List[Any]) -> Any:
    node: Any = tree
    for part in path:
        node = node[part]
    return node


def check_value(key: str, value: Any, language: str,
                reject_mojibake: bool = True) -> List[Issue]:
    """Проверки 4-5 для одного листа: пустое значение и кодировка."""
    issues = []
    if isinstance(value, str):
        if not value.strip():
            issues.append(Issue(Severity.ERROR, key, language, "Пустое значение"))
            return issues
        problem = find_encoding_problem(value)
        if problem:
            severity = Severity.ERROR if reject_mojibake else Severity.WARNING
            issues.append(Issue(severity, key, language, problem))
    return issues


def check_placeholders(key: str, ref_text: Any, text: Any, language: str,
                       reference_lang: str) -> List[Issue]:
    """Проверка 3: плейсхолдеры {{var}} совпадают с эталоном."""
    if not isinstance(ref_text, str) or not isinstance(text, str):
        return []
    ref_placeholders = extract_placeholders(ref_text)
    placeholders = extract_placeholders(text)
    if ref_placeholders == placeholders:
        return []
    return [Issue(
        Severity.ERROR, key, language,
        f"Плейсхолдеры не совпадают: {reference_lang}={sorted(ref_placeholders)}, "
        f"{language}={sorted(placeholders)}"
    )]


def validate_patch(patch: Mapping, reference: Optional[Mapping], language: str,
                   reference_lang: str = "en", reject_mojibake: bool = True) -> List[Issue]:
    """
    Проверяет патч перед применением.

    Args:
        patch: Дерево патча (уже развёрнутое из dot-ключей)
        reference: Дерево эталонной локали (None - проверки против эталона пропускаются)
        language: Локаль патча
        reference_lang: Код эталонной локали (для сообщений)
        reject_mojibake: Битая кодировка - ERROR (иначе WARNING)

    Returns:
        Список проблем; патч с ERROR применять нельзя.
    """
    issues = check_schema(patch, language)
    if issues:
        return issues

    for parts, value in walk_leaves(patch):
        key = join_path(parts)
        issues.extend(check_value(key, value, language, reject_mojibake))

        if reference is None:
            continue

        ref_value = get_path(reference, parts)
        if ref_value is MISSING:
            # Лист под существующим листом эталона - конфликт структуры
            for depth in range(len(parts) - 1, 0, -1):
                parent_value = get_path(reference, parts[:depth])
                if parent_value is not MISSING and not is_branch(parent_value):
                    issues.append(Issue(
                        Severity.ERROR, key, language,
                        f"В {reference_lang} '{join_path(parts[:depth])}' - строка, "
                        f"патч превратит его в объект"
                    ))
                    break
            else:
                issues.append(Issue(
                    Severity.WARNING, key, language,
                    f"Ключа нет в эталоне {reference_lang}"
                ))
            continue

        if is_branch(ref_value):
            issues.append(Issue(
                Severity.ERROR, key, language,
                f"В {reference_lang} '{key}' - объект ({count_keys(ref_value)} ключей), "
                f"патч заменит его строкой"
            ))
            continue

        issues.extend(check_placeholders(key, ref_value, value, language, reference_lang))

    return issues


def has_errors(issues: List[Issue]) -> bool:
    return any(i.severity == Severity.ERROR for i in issues)


class LocaleValidator:
    """Аудит всех локалей каталога относительно эталонной."""

    def __init__(self, translations: Dict[str, Dict[str, Any]], reference_lang: str = "en",
                 neutral_max_length: int = NEUTRAL_MAX_LENGTH, reject_mojibake: bool = True):
        if reference_lang not in translations:
            raise ValueError(
                f"Эталонный язык '{reference_lang}' не найден. "
                f"Доступны: {sorted(translations)}"
            )
        self.translations = translations
        self.reference_lang = reference_lang
        self.neutral_max_length = neutral_max_length
        self.reject_mojibake = reject_mojibake
        self.issues: List[Issue] = []

    @property
    def reference(self) -> Dict[str, Any]:
        return self.translations[self.reference_lang]

    def _targets(self):
        for lang in sorted(self.translations):
            if lang != self.reference_lang:
                yield lang, self.translations[lang]

    def check_structure(self):
        for lang in sorted(self.translations):
            self.issues.extend(check_schema(self.translations[lang], lang, Severity.WARNING))

    def check_completeness(self):
        """Пропущенные и непереведённые (совпадающие с эталоном) ключи, лишние ключи."""
        for lang, data in self._targets():
            for pair in walk_pairs(self.reference, data, self.neutral_max_length):
                if not pair.untranslated:
                    continue
                if pair.missing:
                    self.issues.append(Issue(
                        Severity.ERROR, pair.path, lang,
                        f"Отсутствует перевод (есть в {self.reference_lang}, нет в {lang})"
                    ))
                elif pair.value == "":
                    # Пустые значения отдельно сообщает check_values
                    continue
                else:
                    self.issues.append(Issue(
                        Severity.WARNING, pair.path, lang,
                        f"Не переведено (совпадает с {self.reference_lang})"
                    ))

            for key in extra_keys(self.reference, data):
                self.issues.append(Issue(
                    Severity.WARNING, key, lang,
                    f"Лишний ключ (есть в {lang}, нет в {self.reference_lang})"
                ))

    def check_placeholders(self):
        for lang, data in self._targets():
            for pair in walk_pairs(self.reference, data, self.neutral_max_length):
                if pair.missing:
                    continue
                self.issues.extend(check_placeholders(
                    pair.path, pair.ref_value, pair.value, lang, self.reference_lang
                ))

    def check_values(self):
        for lang in sorted(self.translations):
            for key, value in iter_leaves(self.translations[lang]):
                self.issues.extend(check_value(key, value, lang, self.reject_mojibake))

    def check_length_anomalies(self, threshold: float = LENGTH_RATIO_THRESHOLD):
        for lang, data in self._targets():
            for pair in walk_pairs(self.reference, data, self.neutral_max_length):
                ref_text, text = pair.ref_value, pair.value
                if not isinstance(ref_text, str) or not isinstance(text, str):
                    continue
                if len(ref_text) < LENGTH_MIN_REFERENCE or not text:
                    continue
                ratio = len(text) / len(ref_text)
                if ratio > threshold or ratio < (1 / threshold):
                    self.issues.append(Issue(
                        Severity.WARNING, pair.path, lang,
                        f"Аномальная длина: {len(ref_text)} ({self.reference_lang}) vs "
                        f"{len(text)} ({lang}) [ratio={ratio:.2f}]"
                    ))

    def validate_all(self) -> List[Issue]:
        """Запустить все проверки."""
        self.issues = []
        self.check_structure()
        self.check_completeness()
        self.check_placeholders()
        self.check_values()
        self.check_length_anomalies()
        logger.info("Валидация завершена: %s проблем", len(self.issues))
        return self.issues

    def error_count(self) -> int:
        return len([i for i in self.issues if i.severity == Severity.ERROR])

    def print_report(self, console: Console, max_errors: int = 50,
                     max_warnings: int = 30) -> int:
        """Выводит отчёт, возвращает количество ошибок."""
        errors = [i for i in self.issues if i.severity == Severity.ERROR]
        warnings = [i for i in self.issues if i.severity == Severity.WARNING]

        console.rule("ОТЧЁТ ПО ВАЛИДАЦИИ")
        console.print(f"Всего проблем: {len(self.issues)}")
        console.print(f"  - Ошибки (ERROR): {len(errors)}")
        console.print(f"  - Предупреждения (WARNING): {len(warnings)}")
        console.print()

        print_issues(console, errors, "ОШИБКИ (ERROR)", max_errors, style="red")
        print_issues(console, warnings, "ПРЕДУПРЕЖДЕНИЯ (WARNING)", max_warnings, style="yellow")

        table = Table(title="Статистика по языкам")
        table.add_column("Язык")
        table.add_column("Ключей", justify="right")
        table.add_column("Ошибок", justify="right")
        table.add_column("Предупреждений", justify="right")
        for lang in sorted(self.translations):
            lang_issues = [i for i in self.issues if i.language == lang]
            lang_errors = len([i for i in lang_issues if i.severity == Severity.ERROR])
            lang_warnings = len([i for i in lang_issues if i.severity == Severity.WARNING])
            status = "✅" if lang_errors == 0 else "❌"
            marker = " (эталон)" if lang == self.reference_lang else ""
            table.add_row(f"{status} {lang}{marker}", str(count_keys(self.translations[lang])),
                          str(lang_errors), str(lang_warnings))
        console.print(table)

        if errors:
            console.print(f"[bold red]❌ ВАЛИДАЦИЯ НЕ ПРОЙДЕНА: {len(errors)} ошибок[/]")
        else:
            console.print(f"[bold green]✅ ВАЛИДАЦИЯ ПРОЙДЕНА ({len(warnings)} предупреждений)[/]")

        return len(errors)


def print_issues(console: Console, issues: List[Issue], title: str, limit: int,
                 style: str = "") -> None:
    """Печатает первые limit проблем списка."""
    if not issues:
        return
    console.print(f"[bold {style}]{escape(title)}:[/]" if style else f"{escape(title)}:")
    for i, issue in enumerate(issues[:limit], 1):
        console.print(f"{i}. [{issue.language}] {issue.key}", markup=False)
        console.print(f"   → {issue.message}", markup=False)
    if len(issues) > limit:
        console.print(f"... и ещё {len(issues) - limit} (показаны первые {limit})")
    console.print()
