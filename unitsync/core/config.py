"""Configuration settings for the reconciler.

A single `settings` instance is shared by the CLI, the API and the
pipeline. Defaults can be overridden through `UNITSYNC_*` environment
variables; tests monkeypatch attributes directly.
"""
import os
from dataclasses import dataclass, field


def _env(name: str, default: str) -> str:
    return os.environ.get(f"UNITSYNC_{name}", default)


@dataclass
class Settings:
    DB_PATH: str = field(default_factory=lambda: _env("DB_PATH", "data/unitsync.db"))
    STORAGE_PATH: str = field(default_factory=lambda: _env("STORAGE_PATH", "storage"))
    BACKEND: str = field(default_factory=lambda: _env("BACKEND", "sqlite"))
    COLLECTION: str = field(default_factory=lambda: _env("COLLECTION", "units"))
    DISTINGUISHED_TYPE: str = field(default_factory=lambda: _env("DISTINGUISHED_TYPE", "battalion"))
    ANCESTRY_FIELD: str = field(default_factory=lambda: _env("ANCESTRY_FIELD", "battalionId"))
    # Firestore rejects write batches with more than 500 operations.
    MAX_BATCH_SIZE: int = field(default_factory=lambda: int(_env("MAX_BATCH_SIZE", "500")))
    FIRESTORE_PROJECT: str | None = field(default_factory=lambda: os.environ.get("UNITSYNC_FIRESTORE_PROJECT"))
    LEASE_TIMEOUT_SECONDS: int = field(default_factory=lambda: int(_env("LEASE_TIMEOUT_SECONDS", "3600")))


settings = Settings()
