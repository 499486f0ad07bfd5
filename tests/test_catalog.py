"""Тесты чтения/записи файлов локалей."""

import json
import os
import stat

import pytest

from locale_patch.catalog import LocaleCatalog
from locale_patch.config import Settings
from locale_patch.errors import LocaleFileError


@pytest.fixture
def locales_dir(tmp_path):
    path = tmp_path / "locales"
    path.mkdir()
    return path


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


class TestLoad:

    def test_load_nested(self, locales_dir):
        write_json(locales_dir / "fr.json", {"common": {"save": "Enregistrer"}})
        catalog = LocaleCatalog(locales_dir)
        assert catalog.load("fr") == {"common": {"save": "Enregistrer"}}

    def test_missing_file(self, locales_dir):
        catalog = LocaleCatalog(locales_dir)
        with pytest.raises(FileNotFoundError):
            catalog.load("de")
        assert catalog.load("de", missing_ok=True) == {}

    def test_invalid_json(self, locales_dir):
        (locales_dir / "fr.json").write_text("{\"a\": ", encoding="utf-8")
        with pytest.raises(LocaleFileError) as exc:
            LocaleCatalog(locales_dir).load("fr")
        assert "fr.json" in str(exc.value)

    def test_root_must_be_object(self, locales_dir):
        write_json(locales_dir / "fr.json", ["a", "b"])
        with pytest.raises(LocaleFileError):
            LocaleCatalog(locales_dir).load("fr")

    def test_not_utf8(self, locales_dir):
        (locales_dir / "fr.json").write_bytes('{"a": "é"}'.encode("latin-1"))
        with pytest.raises(LocaleFileError):
            LocaleCatalog(locales_dir).load("fr")


class TestSave:

    def test_format(self, locales_dir):
        catalog = LocaleCatalog(locales_dir)
        catalog.save("fr", {"common": {"cancel": "Annuler"}, "title": "Réglages"})

        text = (locales_dir / "fr.json").read_text(encoding="utf-8")
        assert text == (
            '{\n'
            '  "common": {\n'
            '    "cancel": "Annuler"\n'
            '  },\n'
            '  "title": "Réglages"\n'
            '}\n'
        )

    def test_backup_created(self, locales_dir):
        write_json(locales_dir / "fr.json", {"a": "old"})
        catalog = LocaleCatalog(locales_dir)
        catalog.save("fr", {"a": "new"})

        backup = json.loads((locales_dir / "fr.backup.json").read_text(encoding="utf-8"))
        assert backup == {"a": "old"}
        assert catalog.load("fr") == {"a": "new"}

    def test_backup_disabled(self, locales_dir):
        write_json(locales_dir / "fr.json", {"a": "old"})
        catalog = LocaleCatalog(locales_dir, Settings(backup=False))
        catalog.save("fr", {"a": "new"})
        assert not (locales_dir / "fr.backup.json").exists()

    def test_no_temp_files_left(self, locales_dir):
        catalog = LocaleCatalog(locales_dir)
        catalog.save("fr", {"a": "1"})
        catalog.save("fr", {"a": "2"})
        names = sorted(p.name for p in locales_dir.iterdir())
        assert names == ["fr.backup.json", "fr.json"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX-права")
    def test_file_mode_preserved(self, locales_dir):
        path = locales_dir / "fr.json"
        write_json(path, {"a": "1"})
        path.chmod(0o664)

        LocaleCatalog(locales_dir).save("fr", {"a": "2"})

        assert stat.S_IMODE(path.stat().st_mode) == 0o664

    @pytest.mark.skipif(os.name == "nt", reason="POSIX-права")
    def test_new_file_mode_follows_umask(self, locales_dir):
        old_umask = os.umask(0o022)
        try:
            path = LocaleCatalog(locales_dir).save("fr", {"a": "1"})
        finally:
            os.umask(old_umask)

        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_creates_directory(self, tmp_path):
        catalog = LocaleCatalog(tmp_path / "new" / "locales")
        path = catalog.save("es", {"a": "b"})
        assert path.exists()

    def test_sort_keys_and_no_trailing_newline(self, locales_dir):
        settings = Settings(sort_keys=True, trailing_newline=False, indent=4)
        catalog = LocaleCatalog(locales_dir, settings)
        assert catalog.dumps({"b": "1", "a": "2"}) == '{\n    "a": "2",\n    "b": "1"\n}'


class TestListLocales:

    def test_skips_backups_and_service_files(self, locales_dir):
        for name in ("en.json", "fr.json", "fr.backup.json", "_meta.json", "notes.txt"):
            (locales_dir / name).write_text("{}", encoding="utf-8")
        assert LocaleCatalog(locales_dir).list_locales() == ["en", "fr"]

    def test_missing_directory(self, tmp_path):
        assert LocaleCatalog(tmp_path / "nope").list_locales() == []

    def test_load_all(self, locales_dir):
        write_json(locales_dir / "en.json", {"a": "A"})
        write_json(locales_dir / "fr.json", {"a": "Á"})
        assert LocaleCatalog(locales_dir).load_all() == {"en": {"a": "A"}, "fr": {"a": "Á"}}
