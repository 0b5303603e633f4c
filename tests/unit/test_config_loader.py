"""Tests for config loader behavior."""

from __future__ import annotations

import pytest

from backend.app.config import load_settings

pytestmark = [pytest.mark.config]

_ENV_VARS = ("POSTGRES_URL", "THREADBAIRE_SQLITE_PATH", "API_KEY", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_settings_falls_back_to_defaults(monkeypatch, tmp_path):
    """Missing profiles should default to the built-in dev configuration."""

    monkeypatch.setenv("THREADBAIRE_CONFIG_PROFILE", "missing")
    monkeypatch.setenv("THREADBAIRE_CONFIG_DIR", str(tmp_path))
    settings = load_settings()

    assert settings.environment == "dev"
    assert settings.database.backend == "sqlite"
    assert settings.database.sqlite_path == "entries.db"
    assert settings.auth.api_key is None
    assert settings.projects == ["my-project", "another-project"]
    assert settings.logging.level == "INFO"
    assert not settings.uses_postgres


def test_load_settings_reads_yaml_profile(monkeypatch, tmp_path):
    """Config loader should parse YAML profiles."""

    profiles_dir = tmp_path / "profiles"
    profiles_dir.mkdir()
    (profiles_dir / "staging.yaml").write_text(
        """
environment: staging
database:
  postgres_url: "postgres://writer:pw@db:5432/threadbaire"
auth:
  api_key: from-profile
projects:
  - alpha
  - beta
cors_origins: https://journal.example.com
logging:
  level: DEBUG
  json: true
""",
        encoding="utf-8",
    )

    monkeypatch.setenv("THREADBAIRE_CONFIG_PROFILE", "staging")
    monkeypatch.setenv("THREADBAIRE_CONFIG_DIR", str(profiles_dir))

    settings = load_settings()

    assert settings.environment == "staging"
    assert settings.uses_postgres
    assert settings.database.postgres_url == "postgres://writer:pw@db:5432/threadbaire"
    assert settings.auth.api_key == "from-profile"
    assert settings.projects == ["alpha", "beta"]
    assert settings.cors_origins == ["https://journal.example.com"]
    assert settings.logging.level == "DEBUG"
    assert settings.logging.json is True


def test_env_overrides_take_precedence(monkeypatch, tmp_path):
    (tmp_path / "dev.yaml").write_text(
        "auth:\n  api_key: from-profile\ndatabase:\n  sqlite_path: profile.db\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("THREADBAIRE_CONFIG_PROFILE", "dev")
    monkeypatch.setenv("THREADBAIRE_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("API_KEY", "from-env")
    monkeypatch.setenv("THREADBAIRE_SQLITE_PATH", "/data/env.db")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    settings = load_settings()

    assert settings.auth.api_key == "from-env"
    assert settings.database.sqlite_path == "/data/env.db"
    assert settings.logging.level == "WARNING"


def test_postgres_url_env_selects_hosted_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("THREADBAIRE_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("POSTGRES_URL", "postgresql://u:p@localhost/db")

    settings = load_settings(profile="dev")

    assert settings.database.backend == "postgres"


def test_invalid_yaml_raises_runtime_error(tmp_path):
    (tmp_path / "dev.yaml").write_text("database: [unclosed\n", encoding="utf-8")

    with pytest.raises(RuntimeError, match="Failed to parse"):
        load_settings(profile="dev", config_dir=tmp_path)


def test_non_mapping_profile_is_rejected(tmp_path):
    (tmp_path / "dev.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(RuntimeError, match="must be a mapping"):
        load_settings(profile="dev", config_dir=tmp_path)
