"""Configuration loading from environment variables and a config dict."""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidArgumentError

DEFAULT_STORAGE_ROOT = os.path.expanduser("~/.amplifier/session-store")

ARTIFACT_BACKENDS = ("memory", "file")
MEMORY_BACKENDS = ("memory", "qdrant")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StoreConfig:
    """Backend selection and locations for the two stores."""

    artifact_backend: str = "memory"
    memory_backend: str = "memory"
    storage_root: str = DEFAULT_STORAGE_ROOT
    qdrant_path: Optional[str] = None  # None keeps Qdrant in memory
    collection: str = "memory_entries"
    log_level: str = "INFO"

    def as_dict(self) -> dict:
        return {
            "artifact_backend": self.artifact_backend,
            "memory_backend": self.memory_backend,
            "storage_root": self.storage_root,
            "qdrant_path": self.qdrant_path,
            "collection": self.collection,
            "log_level": self.log_level,
        }


def load_config(config: Optional[dict] = None) -> StoreConfig:
    """Resolve store configuration.

    Priority: environment variables > config dict > defaults.

    Raises:
        InvalidArgumentError: If a backend name or log level is unknown
    """
    config = config or {}

    resolved = StoreConfig(
        artifact_backend=os.getenv(
            "SESSION_STORE_ARTIFACT_BACKEND", config.get("artifact_backend", "memory")
        ),
        memory_backend=os.getenv(
            "SESSION_STORE_MEMORY_BACKEND", config.get("memory_backend", "memory")
        ),
        storage_root=os.getenv(
            "SESSION_STORE_ROOT", config.get("storage_root", DEFAULT_STORAGE_ROOT)
        ),
        qdrant_path=os.getenv("SESSION_STORE_QDRANT_PATH", config.get("qdrant_path")),
        collection=os.getenv(
            "SESSION_STORE_COLLECTION", config.get("collection", "memory_entries")
        ),
        log_level=os.getenv("SESSION_STORE_LOG_LEVEL", config.get("log_level", "INFO")),
    )

    if resolved.artifact_backend not in ARTIFACT_BACKENDS:
        raise InvalidArgumentError(
            f"Unknown artifact_backend: {resolved.artifact_backend!r}. "
            f"Expected one of {', '.join(ARTIFACT_BACKENDS)}."
        )
    if resolved.memory_backend not in MEMORY_BACKENDS:
        raise InvalidArgumentError(
            f"Unknown memory_backend: {resolved.memory_backend!r}. "
            f"Expected one of {', '.join(MEMORY_BACKENDS)}."
        )
    resolved.log_level = str(resolved.log_level).upper()
    if resolved.log_level not in LOG_LEVELS:
        raise InvalidArgumentError(
            f"Unknown log_level: {resolved.log_level!r}. "
            f"Expected one of {', '.join(LOG_LEVELS)}."
        )
    return resolved
