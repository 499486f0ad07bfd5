"""Тесты проверок патчей и аудита каталога."""

import pytest
from rich.console import Console

from locale_patch.validator import (
    LocaleValidator,
    Severity,
    check_schema,
    extract_placeholders,
    has_errors,
    validate_patch,
)

MOJIBAKE = "Создать".encode("utf-8").decode("mac_roman")

REFERENCE = {
    "common": {"cancel": "Cancel", "ok": "OK"},
    "welcome": "Hello, {{name}}!",
    "games": {"count": "{{count}} games played"},
}


def issues_by_key(issues):
    return {i.key: i for i in issues}


class TestSchema:

    def test_valid_tree(self):
        assert check_schema({"a": {"b": "c"}, "tags": ["x", "y"]}, "fr") == []

    def test_non_string_leaves(self):
        issues = check_schema({"a": {"b": 1}, "c": None, "d": "ok"}, "fr")
        assert [i.key for i in issues] == ["a.b", "c"]
        assert all(i.severity == Severity.ERROR for i in issues)

    def test_list_with_number(self):
        issues = check_schema({"tags": ["x", 2]}, "fr")
        assert [i.key for i in issues] == ["tags.1"]

    def test_root_not_object(self):
        [issue] = check_schema(["a"], "fr")
        assert issue.key == "<root>"


class TestValidatePatch:

    def test_clean_patch(self):
        patch = {"common": {"cancel": "Annuler"}, "welcome": "Bonjour, {{name}} !"}
        assert validate_patch(patch, REFERENCE, "fr") == []

    def test_placeholder_mismatch(self):
        issues = validate_patch({"welcome": "Bonjour, {{nom}} !"}, REFERENCE, "fr")
        [issue] = issues
        assert issue.severity == Severity.ERROR
        assert "Плейсхолдеры" in issue.message

    def test_empty_value(self):
        issues = validate_patch({"common": {"cancel": "  "}}, REFERENCE, "fr")
        assert has_errors(issues)

    def test_mojibake_rejected_by_default(self):
        issues = validate_patch({"common": {"cancel": MOJIBAKE}}, REFERENCE, "ru")
        assert issues_by_key(issues)["common.cancel"].severity == Severity.ERROR

    def test_mojibake_allowed(self):
        issues = validate_patch({"common": {"cancel": MOJIBAKE}}, REFERENCE, "ru",
                                reject_mojibake=False)
        assert not has_errors(issues)
        assert issues_by_key(issues)["common.cancel"].severity == Severity.WARNING

    def test_unknown_key_is_warning(self):
        issues = validate_patch({"common": {"newKey": "Nouveau"}}, REFERENCE, "fr")
        [issue] = issues
        assert issue.severity == Severity.WARNING
        assert issue.key == "common.newKey"

    def test_leaf_under_reference_leaf(self):
        issues = validate_patch({"welcome": {"title": "Bienvenue"}}, REFERENCE, "fr")
        assert has_errors(issues)

    def test_leaf_replacing_reference_branch(self):
        issues = validate_patch({"games": "Jeux"}, REFERENCE, "fr")
        assert has_errors(issues)

    def test_without_reference(self):
        assert validate_patch({"anything": "Valeur"}, None, "fr") == []

    def test_schema_errors_stop_other_checks(self):
        issues = validate_patch({"common": {"cancel": 5}}, REFERENCE, "fr")
        assert [i.key for i in issues] == ["common.cancel"]

    def test_extract_placeholders(self):
        assert extract_placeholders("{{count}} of {{ total }}") == {"count", "total"}
        assert extract_placeholders(None) == set()


class TestLocaleValidator:

    def make(self, **targets):
        translations = {"en": REFERENCE}
        translations.update(targets)
        return LocaleValidator(translations, reference_lang="en")

    def test_reference_required(self):
        with pytest.raises(ValueError):
            LocaleValidator({"fr": {}}, reference_lang="en")

    def test_complete_locale_passes(self):
        validator = self.make(fr={
            "common": {"cancel": "Annuler", "ok": "OK"},
            "welcome": "Bonjour, {{name}} !",
            "games": {"count": "{{count}} parties jouées"},
        })
        validator.validate_all()
        assert validator.error_count() == 0

    def test_missing_and_identical(self):
        validator = self.make(fr={"common": {"cancel": "Cancel", "ok": "OK"},
                                  "welcome": "Bonjour, {{name}} !"})
        issues = issues_by_key([i for i in validator.validate_all() if i.language == "fr"])
        assert issues["games.count"].severity == Severity.ERROR
        assert issues["common.cancel"].severity == Severity.WARNING
        assert "common.ok" not in issues

    def test_extra_key_warning(self):
        validator = self.make(fr={
            "common": {"cancel": "Annuler", "ok": "OK", "legacy": "Ancien"},
            "welcome": "Bonjour, {{name}} !",
            "games": {"count": "{{count}} parties jouées"},
        })
        issues = issues_by_key(validator.validate_all())
        assert issues["common.legacy"].severity == Severity.WARNING
        assert validator.error_count() == 0

    def test_empty_value_reported_once(self):
        validator = self.make(fr={
            "common": {"cancel": "", "ok": "OK"},
            "welcome": "Bonjour, {{name}} !",
            "games": {"count": "{{count}} parties jouées"},
        })
        issues = [i for i in validator.validate_all() if i.key == "common.cancel"]
        assert len(issues) == 1
        assert issues[0].message == "Пустое значение"

    def test_mojibake_in_locale(self):
        validator = self.make(ru={
            "common": {"cancel": MOJIBAKE, "ok": "OK"},
            "welcome": "Привет, {{name}}!",
            "games": {"count": "Сыграно игр: {{count}}"},
        })
        validator.validate_all()
        assert validator.error_count() == 1

    def test_length_anomaly(self):
        validator = self.make(fr={
            "common": {"cancel": "Annuler", "ok": "OK"},
            "welcome": "Bonjour, {{name}} !",
            "games": {"count": "{{count}}" + " très longue phrase" * 5},
        })
        issues = issues_by_key(validator.validate_all())
        assert "Аномальная длина" in issues["games.count"].message

    def test_print_report(self, capsys):
        validator = self.make(fr={"common": {"cancel": "Annuler"}})
        validator.validate_all()
        console = Console(width=120)
        errors = validator.print_report(console)
        out = capsys.readouterr().out
        assert errors == validator.error_count() > 0
        assert "ВАЛИДАЦИЯ НЕ ПРОЙДЕНА" in out
        assert "[fr] games.count" in out
