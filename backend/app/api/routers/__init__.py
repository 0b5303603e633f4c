"""Router exports for FastAPI composition."""

from . import entries, health, init, rundown

__all__ = ["entries", "health", "init", "rundown"]
