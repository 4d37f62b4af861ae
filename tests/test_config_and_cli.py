"""Tests for configuration and the command line entry point."""

import pytest

from fairway.config import Config
from fairway.main import build_parser, main


class TestConfig:

    def test_sqlite_url_gets_async_driver(self):
        assert Config.get_async_database_url("sqlite:///fairway.db") == "sqlite+aiosqlite:///fairway.db"

    def test_other_urls_untouched(self):
        url = "postgresql+asyncpg://fairway@db/fairway"
        assert Config.get_async_database_url(url) == url

    def test_defaults_are_valid(self):
        Config.validate()

    @pytest.mark.parametrize("name,value", [
        ("RIVALRY_THRESHOLD", 0), ("MAX_RIVALRY_PAIRS", 0), ("MAX_RIVALRY_CARDS_PER_EVENT", -1),
    ])
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setattr(Config, name, value)
        with pytest.raises(ValueError):
            Config.validate()

    def test_guard_needs_redis_url(self, monkeypatch):
        monkeypatch.setattr(Config, "DELIVERY_GUARD_ENABLED", True)
        monkeypatch.setattr(Config, "REDIS_URL", "")
        with pytest.raises(ValueError):
            Config.validate()


class TestCli:

    def test_parser(self):
        args = build_parser().parse_args(["complete-group", "12", "group_2"])
        assert (args.command, args.outing_id, args.group_key) == ("complete-group", 12, "group_2")

    def test_init_db_then_discard_unknown_round(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setattr(Config, "DELIVERY_GUARD_ENABLED", False)
        url = f"sqlite:///{tmp_path / 'cli.db'}"

        assert main(["--database-url", url, "init-db"]) == 0
        assert (tmp_path / "cli.db").exists()
        assert main(["--database-url", url, "complete-round", "5"]) == 0

        assert capsys.readouterr().out.startswith("discarded: outing=None")

    def test_missing_series_is_an_error(self, tmp_path):
        assert main(["--database-url", f"sqlite:///{tmp_path / 'cli.db'}", "standings", "3"]) == 1
