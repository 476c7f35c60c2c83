"""Tests for the marginalia-db command line."""

import json

import pytest

from store.cli import build_parser, main
from store.store import Store


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "books.db"


class TestParser:
    """Tests for argument parsing."""

    def test_backup_output(self):
        args = build_parser().parse_args(["-d", "x.db", "backup", "-o", "copy.db"])
        assert (args.database, args.command, args.output) == ("x.db", "backup", "copy.db")

    def test_import_json_path_optional(self):
        args = build_parser().parse_args(["import-json"])
        assert args.json is None

    def test_no_command(self):
        """Test that running without a command exits non-zero."""
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 1


class TestCommands:
    """Tests for running commands against a temporary store."""

    def test_init_creates_database(self, db_path):
        main(["--database", str(db_path), "init"])
        assert db_path.exists()

    def test_database_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MARGINALIA_DB_PATH", str(tmp_path / "env.db"))
        main(["init"])
        assert (tmp_path / "env.db").exists()

    def test_status_without_database(self, db_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--database", str(db_path), "status"])
        assert excinfo.value.code == 1

    def test_status_after_init(self, db_path, capsys):
        main(["--database", str(db_path), "init"])
        main(["--database", str(db_path), "status"])
        assert "applied" in capsys.readouterr().out

    def test_stats(self, db_path, capsys):
        main(["--database", str(db_path), "stats"])
        out = capsys.readouterr().out
        assert "books" in out
        assert "connections" in out

    def test_backup(self, db_path, tmp_path):
        main(["--database", str(db_path), "init"])
        target = tmp_path / "copy.db"

        main(["--database", str(db_path), "backup", "--output", str(target)])

        assert target.exists()

    def test_vacuum(self, db_path):
        main(["--database", str(db_path), "vacuum"])
        assert db_path.exists()

    def test_import_json(self, db_path, tmp_path):
        """Test that the legacy library lands in the store."""
        legacy = tmp_path / "books.json"
        legacy.write_text(json.dumps([{"title": "Emma", "filePath": "/emma.epub"}]))

        main(["--database", str(db_path), "import-json", str(legacy)])

        with Store(db_path) as store:
            assert [b.title for b in store.books.get_all()] == ["Emma"]

    def test_import_json_invalid(self, db_path, tmp_path):
        legacy = tmp_path / "books.json"
        legacy.write_text(json.dumps({"not": "a list"}))

        with pytest.raises(SystemExit):
            main(["--database", str(db_path), "import-json", str(legacy)])
