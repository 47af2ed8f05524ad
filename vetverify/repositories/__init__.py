"""
Repository layer - abstracts persistence.

Usage:
    from vetverify.repositories import get_repository

    repo = get_repository()  # Returns configured backend
    record = repo.load("acct-123")
    repo.commit_status("acct-123", ProfessionalStatus.APPROVED, decision)

Backends are swappable via config (VETVERIFY_BACKEND).
"""

from pathlib import Path
from typing import Optional

from ..config import DATA_DIR
from .base import Repository, AccountRecord
from .json_backend import JsonRepository
from .memory_backend import MemoryRepository

# Default backend - can be changed via config
_backend: str = "json"
_options: dict = {}
_instance: Optional[Repository] = None


def get_repository() -> Repository:
    """Get the configured repository instance."""
    global _instance

    if _instance is None:
        if _backend == "json":
            _instance = JsonRepository(Path(_options.get("data_dir", DATA_DIR)))
        elif _backend == "memory":
            _instance = MemoryRepository()
        else:
            raise ValueError(f"Unknown backend: {_backend}")

    return _instance


def configure_backend(backend: str, **kwargs) -> None:
    """Configure the repository backend."""
    global _backend, _options, _instance
    _backend = backend
    _options = kwargs
    _instance = None  # Force re-initialization


__all__ = [
    "get_repository",
    "configure_backend",
    "Repository",
    "AccountRecord",
    "JsonRepository",
    "MemoryRepository",
]
