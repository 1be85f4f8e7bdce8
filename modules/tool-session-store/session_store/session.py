"""Per-session views over the artifact and memory services."""

from __future__ import annotations

from typing import Iterable

from .artifacts import ArtifactService
from .memory import MemoryService
from .models import IdentityKey, MemoryEntry, Part, SessionEvent


class SessionArtifacts:
    """Artifact operations bound to one identity key."""

    def __init__(self, service: ArtifactService, key: IdentityKey):
        self.service = service
        self.key = key

    async def save(self, name: str, part: Part) -> int:
        return await self.service.save(self.key, name, part)

    async def load(self, name: str) -> Part:
        return await self.service.load(self.key, name)

    async def load_version(self, name: str, version: int) -> Part:
        return await self.service.load(self.key, name, version)

    async def list(self) -> list[str]:
        return await self.service.list_names(self.key)

    async def versions(self, name: str) -> list[int]:
        return await self.service.list_versions(self.key, name)


class SessionMemory:
    """Memory operations for the user behind one identity key.

    Ingestion and search use ``(tenant, user)`` only, so every session of
    that user sees the same entries.
    """

    def __init__(self, service: MemoryService, key: IdentityKey):
        self.service = service
        self.key = key

    async def add_session(self, events: Iterable[SessionEvent]) -> int:
        return await self.service.ingest(self.key.scope, events)

    async def search(self, query: str) -> list[MemoryEntry]:
        return await self.service.search(self.key.scope, query)
