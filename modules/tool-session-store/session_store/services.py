"""Process-scoped container owning the artifact and memory services."""

import logging
from typing import Optional

from .artifacts import ArtifactService, FileArtifactService, InMemoryArtifactService
from .config import StoreConfig, load_config
from .memory import InMemoryMemoryService, MemoryService, QdrantMemoryService
from .models import IdentityKey
from .session import SessionArtifacts, SessionMemory

logger = logging.getLogger(__name__)


class StoreServices:
    """Owns one artifact service and one memory service.

    Build once at process start (``from_config``), hand to consumers, and
    ``close()`` at shutdown. Also usable as a context manager.
    """

    def __init__(self, artifacts: ArtifactService, memory: MemoryService):
        self.artifacts = artifacts
        self.memory = memory
        self._closed = False

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "StoreServices":
        """Build services from a config dict (see :func:`load_config`)."""
        resolved: StoreConfig = load_config(config)
        options = resolved.as_dict()
        logging.getLogger("session_store").setLevel(resolved.log_level)

        if resolved.artifact_backend == "file":
            artifacts: ArtifactService = FileArtifactService(options)
        else:
            artifacts = InMemoryArtifactService()

        if resolved.memory_backend == "qdrant":
            memory: MemoryService = QdrantMemoryService(options)
        else:
            memory = InMemoryMemoryService()

        logger.info(
            "Store services started (artifacts=%s, memory=%s)",
            resolved.artifact_backend,
            resolved.memory_backend,
        )
        return cls(artifacts, memory)

    def artifacts_for(self, key: IdentityKey) -> SessionArtifacts:
        return SessionArtifacts(self.artifacts, key)

    def memory_for(self, key: IdentityKey) -> SessionMemory:
        return SessionMemory(self.memory, key)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.artifacts.close()
        self.memory.close()
        logger.info("Store services closed")

    def __enter__(self) -> "StoreServices":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
