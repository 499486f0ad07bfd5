#!/usr/bin/env python3
"""
Manager - CLI для патчей переводов и аудита локалей.

Команды:
  apply     Применяет патч(и) к файлам локалей (deep merge), показывает прогресс
  status    Непереведённые ключи относительно эталона (по локалям и секциям)
  extract   Выгружает непереведённые ключи для переводчика
  memory    Переводит по памяти переводов (текст эталона -> перевод)
  validate  Аудит каталога: полнота, плейсхолдеры, пустые значения, кодировка
  stats     Количество ключей и покрытие по локалям

Использование:
  locale-patch apply patches/fr.common.yaml
  locale-patch apply patches/bundle.json --dry-run
  locale-patch status --locale fr --sections
  locale-patch extract --locale es --output untranslated/es.json
  locale-patch memory --locale es --memory tm/es.json
  locale-patch validate
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .catalog import LocaleCatalog
from .config import Settings, load_settings
from .diff import (
    ROOT_SECTION,
    changed_keys,
    count_keys,
    count_untranslated,
    coverage_percent,
    extra_keys,
    find_untranslated,
    section_breakdown,
    untranslated_paths,
)
from .encoding import repair_tree
from .errors import LocaleFileError, PatchFormatError, PatchRejected
from .patches import (
    group_by_locale,
    load_patch_file,
    load_translation_memory,
    translate_from_memory,
    write_data_file,
)
from .tree import deep_merge, flatten_tree, is_branch
from .validator import LocaleValidator, Severity, has_errors, print_issues, validate_patch

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Context:
    """Общее состояние команды: настройки, каталог и консоль."""

    def __init__(self, settings: Settings, console: Console):
        self.settings = settings
        self.console = console
        self.catalog = LocaleCatalog(settings.locales_path, settings)

    @property
    def reference_locale(self) -> str:
        return self.settings.reference_locale

    def load_reference(self, required: bool = True) -> Optional[Dict[str, Any]]:
        """Загружает эталонную локаль; без required отсутствие - предупреждение."""
        if not required and not self.catalog.exists(self.reference_locale):
            logger.warning("Эталон %s не найден, проверки против эталона пропущены",
                           self.catalog.path_for(self.reference_locale))
            return None
        return self.catalog.load(self.reference_locale)


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def resolve_settings(args) -> Settings:
    """YAML + окружение, поверх - флаги CLI."""
    settings = load_settings(args.config)
    if args.locales_dir:
        settings.locales_dir = args.locales_dir
    if args.reference:
        settings.reference_locale = args.reference
    if getattr(args, "no_backup", False):
        settings.backup = False
    if getattr(args, "allow_mojibake", False):
        settings.reject_mojibake = False
    return settings


def _untranslated_or_dash(reference: Optional[Dict[str, Any]], tree: Dict[str, Any],
                          settings: Settings, locale: str) -> str:
    if reference is None or locale == settings.reference_locale:
        return "-"
    return str(count_untranslated(reference, tree, settings.neutral_max_length))


def _check_patch(ctx: Context, locale: str, patch: Dict[str, Any],
                 reference: Optional[Dict[str, Any]], limit: int) -> None:
    """Проверяет патч; при ошибках печатает их и бросает PatchRejected."""
    settings = ctx.settings
    check_against = reference if locale != settings.reference_locale else None
    issues = validate_patch(patch, check_against, locale, settings.reference_locale,
                            settings.reject_mojibake)

    warnings = [i for i in issues if i.severity == Severity.WARNING]
    print_issues(ctx.console, warnings, f"⚠️  [{locale}] Предупреждения", limit, style="yellow")

    if has_errors(issues):
        errors = [i for i in issues if i.severity == Severity.ERROR]
        print_issues(ctx.console, errors, f"❌ [{locale}] Ошибки", limit, style="red")
        raise PatchRejected(locale, errors)


def _patch_sections(patch: Dict[str, Any]) -> List[str]:
    """Секции верхнего уровня, которые затрагивает патч."""
    return sorted({key if is_branch(value) else ROOT_SECTION for key, value in patch.items()})


def _print_sections(ctx: Context, locale: str, reference: Dict[str, Any],
                    tree: Dict[str, Any], only: Optional[List[str]] = None,
                    show_complete: bool = False) -> None:
    breakdown = section_breakdown(reference, tree, ctx.settings.neutral_max_length)
    table = Table(title=f"Секции: {locale}")
    table.add_column("Секция")
    table.add_column("Не переведено", justify="right")
    table.add_column("Всего", justify="right")

    rows = 0
    for section, (missing, total) in sorted(breakdown.items(), key=lambda x: (-x[1][0], x[0])):
        if only is not None and section not in only:
            continue
        if not missing and not show_complete and only is None:
            continue
        status = "✅" if missing == 0 else "⚠️ "
        table.add_row(f"{status} {escape(section)}", str(missing), str(total))
        rows += 1

    if rows:
        ctx.console.print(table)
    else:
        ctx.console.print(f"  ✅ {locale}: все секции переведены")


# ── Команды ──

def cmd_apply(args, ctx: Context) -> int:
    """Команда: применение патчей к локалям."""
    console = ctx.console
    settings = ctx.settings

    patches = []
    for path in args.patches:
        patches.extend(load_patch_file(Path(path), locale=args.locale))
    grouped = group_by_locale(patches)
    reference = ctx.load_reference(required=False)

    console.print(f"\n🌍 Применение патчей: {len(args.patches)} файл(ов)")
    console.print(f"   Директория: {escape(str(settings.locales_path))}")
    console.print(f"   Локали: {', '.join(grouped)}")

    # Фаза 1: проверка всех патчей до записи
    prepared = {}
    for locale, patch in grouped.items():
        if args.repair_encoding:
            patch, fixed = repair_tree(patch)
            if fixed:
                console.print(f"  🔧 {locale}: исправлена кодировка в {len(fixed)} ключах")
                logger.info("Исправлена кодировка (%s): %s", locale, fixed)
        _check_patch(ctx, locale, patch, reference, args.max_issues)
        prepared[locale] = patch

    # Фаза 2: слияние и запись
    table = Table(title="Результат" + (" (dry run)" if args.dry_run else ""))
    table.add_column("Локаль")
    table.add_column("Ключей в патче", justify="right")
    table.add_column("Изменено", justify="right")
    table.add_column("Не переведено до", justify="right")
    table.add_column("после", justify="right")

    written = 0
    for locale, patch in prepared.items():
        is_new = not ctx.catalog.exists(locale)
        existing = ctx.catalog.load(locale, missing_ok=True)
        updated = deep_merge(existing, patch)
        changed = changed_keys(existing, updated)

        if not args.dry_run and (changed or is_new):
            ctx.catalog.save(locale, updated)
            written += 1

        marker = " (новая)" if is_new else ""
        table.add_row(
            f"{locale}{marker}",
            str(count_keys(patch)),
            str(len(changed)),
            _untranslated_or_dash(reference, existing, settings, locale),
            _untranslated_or_dash(reference, updated, settings, locale),
        )

        if args.sections and reference is not None and locale != settings.reference_locale:
            _print_sections(ctx, locale, reference, updated, only=_patch_sections(patch))

    console.print(table)

    if args.dry_run:
        console.print("ℹ️  Dry run: файлы не изменены")
    else:
        console.print(f"✅ Записано файлов: {written}")
    return 0


def cmd_status(args, ctx: Context) -> int:
    """Команда: непереведённые ключи по локалям."""
    console = ctx.console
    settings = ctx.settings
    reference = ctx.load_reference()

    locales = args.locale or [
        code for code in ctx.catalog.list_locales() if code != settings.reference_locale
    ]
    trees = {locale: ctx.catalog.load(locale) for locale in locales}

    total_keys = count_keys(reference)
    console.print(f"\n📊 Статус переводов (эталон: {settings.reference_locale}, {total_keys} ключей)")

    table = Table()
    table.add_column("Локаль")
    table.add_column("Не переведено", justify="right")
    table.add_column("Покрытие", justify="right")
    table.add_column("Лишних", justify="right")

    total_untranslated = 0
    for locale, tree in trees.items():
        missing = count_untranslated(reference, tree, settings.neutral_max_length)
        total_untranslated += missing
        coverage = coverage_percent(reference, tree, settings.neutral_max_length)
        status = "✅" if missing == 0 else "⚠️ "
        table.add_row(f"{status} {locale}", str(missing), f"{coverage}%",
                      str(len(extra_keys(reference, tree))))
    console.print(table)

    for locale, tree in trees.items():
        if args.sections:
            _print_sections(ctx, locale, reference, tree, show_complete=args.all_sections)
        if args.show_keys:
            paths = untranslated_paths(reference, tree, settings.neutral_max_length)
            if not paths:
                continue
            console.print(f"\n🔍 {locale}: непереведённые ключи")
            for path in paths[:args.limit]:
                console.print(f"   - {path}", markup=False)
            if len(paths) > args.limit:
                console.print(f"   ... и ещё {len(paths) - args.limit}")

    if args.fail_on_untranslated and total_untranslated:
        console.print(f"❌ Непереведённых ключей: {total_untranslated}")
        return 1
    return 0


def cmd_extract(args, ctx: Context) -> int:
    """Команда: выгрузка непереведённых ключей для переводчика."""
    settings = ctx.settings
    reference = ctx.load_reference()
    if args.locale == settings.reference_locale:
        raise ValueError(f"'{args.locale}' - эталонная локаль, выгружать нечего")

    tree = ctx.catalog.load(args.locale, missing_ok=True)
    subtree = find_untranslated(reference, tree, settings.neutral_max_length)
    data = flatten_tree(subtree) if args.flat else subtree

    output = Path(args.output)
    write_data_file(output, data, indent=settings.indent)
    ctx.console.print(
        f"📤 {args.locale}: {count_keys(subtree)} непереведённых ключей -> {escape(str(output))}"
    )
    return 0


def cmd_memory(args, ctx: Context) -> int:
    """Команда: перевод по памяти переводов."""
    console = ctx.console
    settings = ctx.settings
    locale = args.locale
    reference = ctx.load_reference()
    if locale == settings.reference_locale:
        raise ValueError(f"'{locale}' - эталонная локаль, память переводов к ней не применяется")

    memory: Dict[str, str] = {}
    for path in args.memory:
        memory.update(load_translation_memory(Path(path)))

    existing = ctx.catalog.load(locale)
    before = count_untranslated(reference, existing, settings.neutral_max_length)
    console.print(f"\n🧠 Память переводов: {len(memory)} записей")
    console.print(f"📊 {locale}: не переведено до применения: {before}")

    patch = translate_from_memory(reference, existing, memory, settings.neutral_max_length)
    if not patch:
        console.print("⚠️  Новых переводов в памяти не найдено")
        return 0

    _check_patch(ctx, locale, patch, reference, args.max_issues)

    updated = deep_merge(existing, patch)
    after = count_untranslated(reference, updated, settings.neutral_max_length)
    progress = coverage_percent(reference, updated, settings.neutral_max_length)

    console.print(f"✅ Переведено: {before - after}")
    console.print(f"📊 Осталось: {after}")
    console.print(f"📈 Прогресс: {progress}%")

    if args.dry_run:
        console.print("ℹ️  Dry run: файлы не изменены")
    else:
        ctx.catalog.save(locale, updated)
    return 0


def cmd_validate(args, ctx: Context) -> int:
    """Команда: аудит каталога локалей."""
    settings = ctx.settings
    translations = ctx.catalog.load_all()
    if not translations:
        raise FileNotFoundError(f"В {settings.locales_path} нет файлов локалей")

    if args.locale:
        selected = [settings.reference_locale] + [code for code in args.locale
                                                  if code != settings.reference_locale]
        missing = [code for code in selected if code not in translations]
        if missing:
            raise FileNotFoundError(
                f"Локали не найдены в {settings.locales_path}: {', '.join(missing)}"
            )
        translations = {code: translations[code] for code in selected}

    ctx.console.print(f"\n✅ Валидация переводов: {', '.join(sorted(translations))} "
                      f"(эталон: {settings.reference_locale})")

    validator = LocaleValidator(translations, settings.reference_locale,
                                settings.neutral_max_length, settings.reject_mojibake)
    validator.validate_all()
    errors = validator.print_report(ctx.console, args.max_errors, args.max_warnings)
    return 1 if errors else 0


def cmd_stats(args, ctx: Context) -> int:
    """Команда: статистика каталога."""
    console = ctx.console
    settings = ctx.settings

    locales = ctx.catalog.list_locales()
    if not locales:
        console.print("\n  Файлы локалей не найдены.")
        console.print(f"  Директория: {escape(str(settings.locales_path))}")
        return 0

    reference = None
    if settings.reference_locale in locales:
        reference = ctx.catalog.load(settings.reference_locale)

    console.print("\n📊 Статистика переводов")
    console.print(f"   Директория: {escape(str(settings.locales_path))}")

    table = Table()
    table.add_column("Локаль")
    table.add_column("Ключей", justify="right")
    table.add_column("Не переведено", justify="right")
    table.add_column("Покрытие", justify="right")
    table.add_column("Лишних", justify="right")

    for locale in locales:
        tree = ctx.catalog.load(locale)
        if reference is None:
            table.add_row(locale, str(count_keys(tree)), "-", "-", "-")
        elif locale == settings.reference_locale:
            table.add_row(f"{locale} (эталон)", str(count_keys(tree)), "-", "100.0%", "-")
        else:
            table.add_row(
                locale,
                str(count_keys(tree)),
                str(count_untranslated(reference, tree, settings.neutral_max_length)),
                f"{coverage_percent(reference, tree, settings.neutral_max_length)}%",
                str(len(extra_keys(reference, tree))),
            )
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Строит парсер аргументов."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML-конфиг (по умолчанию ./locale_patch.yaml)")
    common.add_argument("--locales-dir", default=None, help="Директория файлов локалей")
    common.add_argument("--reference", default=None, help="Эталонная локаль")
    common.add_argument("-v", "--verbose", action="count", default=0,
                        help="Подробный лог (-v INFO, -vv DEBUG)")

    parser = argparse.ArgumentParser(
        prog="locale-patch",
        description="Патчи и аудит JSON-локалей приложения",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  # Применить патч (локаль из имени файла)
  locale-patch apply patches/fr.common.yaml

  # Бандл нескольких локалей без записи
  locale-patch apply patches/bundle.json --dry-run

  # Что осталось перевести
  locale-patch status --locale es --sections --show-keys

  # Аудит всех локалей
  locale-patch validate
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Команда")

    # === apply ===
    p_apply = subparsers.add_parser("apply", parents=[common], help="Применить патч(и) к локалям")
    p_apply.add_argument("patches", nargs="+", help="Файлы патчей (.json/.yaml/.yml)")
    p_apply.add_argument("--locale", default=None,
                         help="Локаль патча (иначе из файла или имени файла)")
    p_apply.add_argument("--dry-run", action="store_true", help="Показать результат без записи")
    p_apply.add_argument("--no-backup", action="store_true", help="Не создавать .backup.json")
    p_apply.add_argument("--allow-mojibake", action="store_true",
                         help="Битая кодировка - предупреждение, а не ошибка")
    p_apply.add_argument("--repair-encoding", action="store_true",
                         help="Попытаться исправить битую кодировку перед проверкой")
    p_apply.add_argument("--sections", action="store_true",
                         help="Показать прогресс по затронутым секциям")
    p_apply.add_argument("--max-issues", type=int, default=30,
                         help="Сколько проблем показывать на локаль")

    # === status ===
    p_status = subparsers.add_parser(
        "status", parents=[common], help="Непереведённые ключи",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Считает непереведённые ключи относительно эталонной локали.

Непереведённый ключ: отсутствует, пустой или совпадает с эталоном.
Совпадающие значения не длиннее neutral_max_length символов (по умолчанию 3:
"OK", "FAQ", "PDF") считаются переведёнными. Строгий режим, где любое
совпадение с эталоном считается непереведённым: neutral_max_length: 0
в locale_patch.yaml.
""")
    p_status.add_argument("--locale", action="append", default=None,
                          help="Локаль (можно несколько раз); по умолчанию все")
    p_status.add_argument("--sections", action="store_true", help="Разбивка по секциям")
    p_status.add_argument("--all-sections", action="store_true",
                          help="Показывать и полностью переведённые секции")
    p_status.add_argument("--show-keys", action="store_true", help="Список непереведённых ключей")
    p_status.add_argument("--limit", type=int, default=50, help="Сколько ключей показывать")
    p_status.add_argument("--fail-on-untranslated", action="store_true",
                          help="Код выхода 1, если есть непереведённые ключи "
                               "(с учётом neutral_max_length)")

    # === extract ===
    p_extract = subparsers.add_parser("extract", parents=[common],
                                      help="Выгрузить непереведённые ключи")
    p_extract.add_argument("--locale", required=True, help="Локаль")
    p_extract.add_argument("--output", required=True, help="Выходной файл (.json/.yaml)")
    p_extract.add_argument("--flat", action="store_true", help="Плоские dot-ключи")

    # === memory ===
    p_memory = subparsers.add_parser("memory", parents=[common],
                                     help="Перевести по памяти переводов")
    p_memory.add_argument("--locale", required=True, help="Локаль")
    p_memory.add_argument("--memory", action="append", required=True,
                          help="Файл памяти переводов (можно несколько раз)")
    p_memory.add_argument("--dry-run", action="store_true", help="Показать результат без записи")
    p_memory.add_argument("--no-backup", action="store_true", help="Не создавать .backup.json")
    p_memory.add_argument("--allow-mojibake", action="store_true",
                          help="Битая кодировка - предупреждение, а не ошибка")
    p_memory.add_argument("--max-issues", type=int, default=30,
                          help="Сколько проблем показывать")

    # === validate ===
    p_val = subparsers.add_parser("validate", parents=[common], help="Аудит локалей")
    p_val.add_argument("--locale", action="append", default=None,
                       help="Проверить только эти локали (эталон добавляется всегда)")
    p_val.add_argument("--allow-mojibake", action="store_true",
                       help="Битая кодировка - предупреждение, а не ошибка")
    p_val.add_argument("--max-errors", type=int, default=50, help="Сколько ошибок показывать")
    p_val.add_argument("--max-warnings", type=int, default=30,
                       help="Сколько предупреждений показывать")

    # === stats ===
    subparsers.add_parser("stats", parents=[common], help="Статистика каталога")

    return parser


COMMANDS = {
    "apply": cmd_apply,
    "status": cmd_status,
    "extract": cmd_extract,
    "memory": cmd_memory,
    "validate": cmd_validate,
    "stats": cmd_stats,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Точка входа CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    console = Console()

    try:
        ctx = Context(resolve_settings(args), console)
        return COMMANDS[args.command](args, ctx)
    except PatchRejected as e:
        console.print(f"❌ {e}", style="bold red", markup=False)
        logger.debug("Патч отклонён", exc_info=True)
        return 1
    except (OSError, LocaleFileError, PatchFormatError, ValueError) as e:
        console.print(f"❌ Ошибка: {e}", style="bold red", markup=False)
        logger.debug("Трассировка", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
