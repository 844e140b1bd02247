"""Tests for configuration, domain wiring and the database management CLI."""

import manage
import pytest
from ordering.domain import ordering, provider_for
from shared.config import Settings


class TestSettings:
    def test_overrides(self):
        settings = Settings(ENVIRONMENT="production", GATEWAY_MAX_ATTEMPTS=5)
        assert settings.is_production
        assert settings.GATEWAY_MAX_ATTEMPTS == 5

    def test_no_database_url_means_memory_provider(self):
        assert Settings(DATABASE_URL=None).DATABASE_URL is None


class TestProviderFor:
    def test_memory_when_unset(self):
        assert provider_for(None) is None
        assert provider_for("") is None

    def test_sqlite(self):
        assert provider_for("sqlite:///orders.db") == {"provider": "sqlite", "database_uri": "sqlite:///orders.db"}

    def test_postgres_with_driver(self):
        url = "postgresql+psycopg2://orders:secret@db/orders"
        assert provider_for(url) == {"provider": "postgresql", "database_uri": url}

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            provider_for("mysql://db/orders")


class TestManageCLI:
    @pytest.fixture()
    def calls(self, monkeypatch):
        calls = []

        def recorder(action):
            def _run(domain):
                calls.append((action, domain))
                return ["default"]

            return _run

        monkeypatch.setattr(manage, "setup_db", recorder("setup"))
        monkeypatch.setattr(manage, "drop_db", recorder("drop"))
        return calls

    def test_setup_db(self, calls, capsys):
        manage.main(["setup-db"])

        assert calls == [("setup", ordering)]
        out = capsys.readouterr().out
        assert "schema ready in: default" in out
        assert "Done." in out

    def test_drop_db(self, calls, capsys):
        manage.main(["drop-db"])

        assert calls == [("drop", ordering)]
        assert "schema dropped in: default" in capsys.readouterr().out

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            manage.main([])
