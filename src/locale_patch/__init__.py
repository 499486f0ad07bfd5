"""
locale_patch - патчи и аудит JSON-локалей приложения.

Модули:
- tree: deep_merge и операции с путями в дереве переводов
- diff: подсчёт непереведённых ключей относительно эталона
- catalog: чтение/запись файлов локалей (бэкап, атомарная запись)
- patches: патчи из JSON/YAML файлов, бандлы, память переводов
- validator: проверки патчей и аудит каталога
- config: настройки (YAML + окружение)
- manager: CLI apply -> status -> validate
"""

from .diff import count_keys, count_untranslated, find_untranslated, untranslated_paths
from .tree import deep_merge, flatten_tree, unflatten

__version__ = "1.0.0"

__all__ = [
    "count_keys",
    "count_untranslated",
    "deep_merge",
    "find_untranslated",
    "flatten_tree",
    "unflatten",
    "untranslated_paths",
]
