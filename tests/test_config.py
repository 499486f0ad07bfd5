"""Тесты загрузки настроек."""

import pytest

from locale_patch.config import Settings, load_settings


class TestLoadSettings:

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings(environ={})
        assert settings == Settings()
        assert settings.locales_dir == "src/locales"
        assert settings.reference_locale == "en"
        assert settings.neutral_max_length == 3

    def test_yaml_file_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "locale_patch.yaml").write_text(
            "locales_dir: app/locales\nbackup: no\nindent: 4\n", encoding="utf-8"
        )
        monkeypatch.chdir(tmp_path)
        settings = load_settings(environ={})
        assert settings.locales_dir == "app/locales"
        assert settings.backup is False
        assert settings.indent == 4

    def test_section_in_project_config(self, tmp_path):
        path = tmp_path / "project.yaml"
        path.write_text(
            "other_tool:\n  x: 1\nlocale_patch:\n  reference_locale: fr\n", encoding="utf-8"
        )
        settings = load_settings(str(path), environ={})
        assert settings.reference_locale == "fr"

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("unknown_option: 1\nsort_keys: true\n", encoding="utf-8")
        settings = load_settings(str(path), environ={})
        assert settings.sort_keys is True
        assert not hasattr(settings, "unknown_option")

    def test_explicit_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "missing.yaml"), environ={})

    def test_environment_overrides_yaml(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("locales_dir: from/yaml\n", encoding="utf-8")
        environ = {"LOCALE_PATCH_LOCALES_DIR": "from/env", "LOCALE_PATCH_REFERENCE": "es"}
        settings = load_settings(str(path), environ=environ)
        assert settings.locales_dir == "from/env"
        assert settings.reference_locale == "es"

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(str(path), environ={})

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("locales_dir: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValueError, match="cfg.yaml"):
            load_settings(str(path), environ={})


class TestSettingsUpdate:

    def test_coercion(self):
        settings = Settings()
        settings.update({"indent": "4", "backup": "false", "reject_mojibake": 0,
                         "reference_locale": 1})
        assert settings.indent == 4
        assert settings.backup is False
        assert settings.reject_mojibake is False
        assert settings.reference_locale == "1"

    def test_none_keeps_default(self):
        settings = Settings()
        settings.update({"indent": None})
        assert settings.indent == 2
