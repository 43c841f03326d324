"""Tests for service configuration.

1. Default values
2. Environment variable loading
3. Validation rules
4. Secrets kept out of repr
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from library_circulation.config import CirculationConfig, get_config, reset_config


class TestCirculationConfig:
    def test_defaults(self, tmp_path):
        config = CirculationConfig(database_path=tmp_path / "library.db")

        assert config.service_name == "library-circulation"
        assert config.transport == "stdio"
        assert config.claim_window_hours == 24
        assert config.lock_timeout_seconds == 5.0
        assert config.notifications_enabled is True
        assert config.smtp_port == 587
        assert not config.smtp_configured

    def test_environment_variable_loading(self, tmp_path):
        env_vars = {
            "LIBRARY_CIRCULATION_SERVICE_NAME": "branch-circulation",
            "LIBRARY_CIRCULATION_DATABASE_PATH": str(tmp_path / "env.db"),
            "LIBRARY_CIRCULATION_CLAIM_WINDOW_HOURS": "48",
            "LIBRARY_CIRCULATION_LOCK_TIMEOUT_SECONDS": "2.5",
            "LIBRARY_CIRCULATION_SMTP_HOST": "smtp.example.org",
            "LIBRARY_CIRCULATION_DEBUG": "true",
        }

        with patch.dict(os.environ, env_vars):
            config = CirculationConfig()

            assert config.service_name == "branch-circulation"
            assert config.database_path == tmp_path / "env.db"
            assert config.claim_window_hours == 48
            assert config.lock_timeout_seconds == 2.5
            assert config.smtp_configured
            assert config.is_development

    def test_relative_database_path_is_made_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = CirculationConfig(database_path=Path("data/circ.db"))

        assert config.database_path.is_absolute()
        assert config.database_path.parent.is_dir()
        assert config.get_database_url() == f"sqlite:///{config.database_path}"

    @pytest.mark.parametrize("name", ["Circulation", "my service", "ab", "x" * 51])
    def test_invalid_service_name(self, name, tmp_path):
        with pytest.raises(ValidationError):
            CirculationConfig(service_name=name, database_path=tmp_path / "x.db")

    @pytest.mark.parametrize(
        "field,value",
        [
            ("claim_window_hours", 0),
            ("lock_timeout_seconds", 0),
            ("lock_timeout_seconds", 120),
            ("transport", "websocket"),
            ("log_level", "TRACE"),
        ],
    )
    def test_invalid_values(self, field, value, tmp_path):
        with pytest.raises(ValidationError):
            CirculationConfig(**{field: value}, database_path=tmp_path / "x.db")

    def test_smtp_password_hidden_from_repr(self, tmp_path):
        config = CirculationConfig(database_path=tmp_path / "x.db", smtp_password="hunter2")
        assert "hunter2" not in repr(config)

    def test_singleton(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LIBRARY_CIRCULATION_DATABASE_PATH", str(tmp_path / "x.db"))
        reset_config()

        config = get_config()
        assert get_config() is config

        reset_config()
        assert get_config() is not config
