"""Configuration loader with YAML profile support and env overrides."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

import yaml

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_SQLITE_PATH = "entries.db"
DEFAULT_PROJECTS: Sequence[str] = ("my-project", "another-project")
DEFAULT_CORS_ORIGINS: Sequence[str] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)
DEFAULT_LOGGING: dict[str, Any] = {"level": "INFO", "json": False}
DEFAULT_PROFILE_DICT: dict[str, Any] = {
    "environment": DEFAULT_ENVIRONMENT,
    "database": {"postgres_url": None, "sqlite_path": DEFAULT_SQLITE_PATH},
    "auth": {"api_key": None},
    "projects": list(DEFAULT_PROJECTS),
    "cors_origins": list(DEFAULT_CORS_ORIGINS),
    "logging": dict(DEFAULT_LOGGING),
}
CONFIG_PROFILE_ENV = "THREADBAIRE_CONFIG_PROFILE"
CONFIG_DIR_ENV = "THREADBAIRE_CONFIG_DIR"
POSTGRES_URL_ENV = "POSTGRES_URL"
SQLITE_PATH_ENV = "THREADBAIRE_SQLITE_PATH"
API_KEY_ENV = "API_KEY"
LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_PROFILE = "dev"
DEFAULT_CONFIG_ROOT = Path(__file__).resolve().parents[3] / "config" / "profiles"
CONFIG_EXTENSIONS = (".yaml", ".yml")


@dataclass
class DatabaseConfig:
    postgres_url: Optional[str] = None
    sqlite_path: str = DEFAULT_SQLITE_PATH
    echo: bool = False

    @property
    def backend(self) -> str:
        """Name of the backend this configuration selects."""

        return "postgres" if self.postgres_url else "sqlite"


@dataclass
class AuthConfig:
    api_key: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = False


@dataclass
class Settings:
    environment: str = DEFAULT_ENVIRONMENT
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    projects: List[str] = field(default_factory=lambda: list(DEFAULT_PROJECTS))
    cors_origins: List[str] = field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS)
    )
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def uses_postgres(self) -> bool:
        return self.database.backend == "postgres"


def load_settings(
    profile: str | None = None, config_dir: str | Path | None = None
) -> Settings:
    """Load settings from the requested profile or fall back to defaults."""

    profile_name = profile or os.getenv(CONFIG_PROFILE_ENV, DEFAULT_PROFILE)
    config_root = Path(
        config_dir or os.getenv(CONFIG_DIR_ENV, DEFAULT_CONFIG_ROOT)
    ).expanduser()
    config_data = _load_profile_dict(profile_name, config_root)
    if not config_data:
        config_data = copy.deepcopy(DEFAULT_PROFILE_DICT)

    database_cfg = config_data.get("database") or {}
    postgres_url = os.getenv(POSTGRES_URL_ENV) or database_cfg.get("postgres_url")
    sqlite_path = os.getenv(SQLITE_PATH_ENV) or database_cfg.get(
        "sqlite_path", DEFAULT_SQLITE_PATH
    )
    database = DatabaseConfig(
        postgres_url=str(postgres_url) if postgres_url else None,
        sqlite_path=str(sqlite_path),
        echo=bool(database_cfg.get("echo", False)),
    )

    auth_cfg = config_data.get("auth") or {}
    api_key = os.getenv(API_KEY_ENV) or auth_cfg.get("api_key")

    logging_cfg = config_data.get("logging") or {}
    logging_config = LoggingConfig(
        level=str(
            os.getenv(LOG_LEVEL_ENV) or logging_cfg.get("level", DEFAULT_LOGGING["level"])
        ),
        json=bool(logging_cfg.get("json", DEFAULT_LOGGING["json"])),
    )

    return Settings(
        environment=str(config_data.get("environment", DEFAULT_ENVIRONMENT)),
        database=database,
        auth=AuthConfig(api_key=str(api_key) if api_key else None),
        projects=_string_list(config_data.get("projects"), DEFAULT_PROJECTS),
        cors_origins=_string_list(
            config_data.get("cors_origins"), DEFAULT_CORS_ORIGINS
        ),
        logging=logging_config,
        raw=config_data,
    )


def _load_profile_dict(profile_name: str, config_root: Path) -> dict[str, Any]:
    """Load the YAML profile if available, otherwise return an empty dict."""

    if not config_root.exists():
        return {}

    for extension in CONFIG_EXTENSIONS:
        candidate = config_root / f"{profile_name}{extension}"
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise RuntimeError(
                f"Failed to parse config profile {candidate}: {exc}"
            ) from exc
        if not isinstance(loaded, dict):
            raise RuntimeError(
                f"Config profile {candidate} must be a mapping at the root"
            )
        return loaded

    return {}


def _string_list(value: Any, default: Sequence[str]) -> List[str]:
    if not value:
        return list(default)
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if str(item).strip()]
