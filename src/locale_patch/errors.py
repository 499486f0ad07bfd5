"""Исключения locale_patch."""

from pathlib import Path
from typing import List, Optional, Union


class LocaleFileError(ValueError):
    """Файл локали не читается как JSON-объект."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class PatchFormatError(ValueError):
    """Файл патча/памяти переводов имеет неверный формат."""

    def __init__(self, path: Optional[Union[str, Path]], reason: str):
        self.path = Path(path) if path else None
        self.reason = reason
        prefix = f"{self.path}: " if self.path else ""
        super().__init__(f"{prefix}{reason}")


class PatchRejected(ValueError):
    """Патч не прошёл проверку и не был применён."""

    def __init__(self, locale: str, issues: List["Issue"]):  # noqa: F821
        self.locale = locale
        self.issues = issues
        super().__init__(
            f"Патч для '{locale}' отклонён: {len(issues)} ошибок "
            f"(первая: {issues[0].key} - {issues[0].message})" if issues
            else f"Патч для '{locale}' отклонён"
        )


class KeyConflictError(ValueError):
    """Один и тот же ключ задан и строкой, и разделом."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"ключ '{key}' задан и как значение, и как раздел")
