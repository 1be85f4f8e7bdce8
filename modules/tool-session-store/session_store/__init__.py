"""Session-scoped artifact store and cross-session memory index."""

__version__ = "1.0.0"

from .errors import InvalidArgumentError, NotFoundError, StoreError, UnavailableError
from .models import (
    Content,
    FunctionCallPart,
    FunctionResponsePart,
    IdentityKey,
    InlineDataPart,
    MemoryEntry,
    MemoryScope,
    SessionEvent,
    TextPart,
)
from .artifacts import ArtifactService, FileArtifactService, InMemoryArtifactService
from .memory import InMemoryMemoryService, MemoryService, QdrantMemoryService
from .session import SessionArtifacts, SessionMemory
from .services import StoreServices

__all__ = [
    "StoreError",
    "NotFoundError",
    "UnavailableError",
    "InvalidArgumentError",
    "IdentityKey",
    "MemoryScope",
    "Content",
    "TextPart",
    "InlineDataPart",
    "FunctionCallPart",
    "FunctionResponsePart",
    "SessionEvent",
    "MemoryEntry",
    "ArtifactService",
    "InMemoryArtifactService",
    "FileArtifactService",
    "MemoryService",
    "InMemoryMemoryService",
    "QdrantMemoryService",
    "SessionArtifacts",
    "SessionMemory",
    "StoreServices",
]
