"""Config package exporting loader helpers."""

from .loader import AuthConfig, DatabaseConfig, LoggingConfig, Settings, load_settings

__all__ = ["AuthConfig", "DatabaseConfig", "LoggingConfig", "Settings", "load_settings"]
