"""Cross-session memory index with keyword search."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import uuid4

from pydantic import ValidationError
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from .errors import UnavailableError
from .models import Content, MemoryEntry, MemoryScope, SessionEvent

logger = logging.getLogger(__name__)


def query_tokens(query: str) -> set[str]:
    """Lowercase whitespace-delimited tokens of a query."""
    return {token.lower() for token in (query or "").split()}


def matches(text: str, tokens: set[str]) -> bool:
    """True if text contains any token as a case-insensitive substring."""
    lowered = text.lower()
    return any(token in lowered for token in tokens)


def entries_from_events(events: Iterable[SessionEvent]) -> list[MemoryEntry]:
    """Turn events carrying text into memory entries; others are skipped."""
    return [
        MemoryEntry(
            content=event.content.model_copy(deep=True),
            author=event.author,
            timestamp=event.timestamp,
        )
        for event in events
        if event.has_text()
    ]


class MemoryService(ABC):
    """Capability shared by every memory backend.

    Entries are partitioned by :class:`MemoryScope`; search never crosses
    scopes and returns matches in ingestion order.
    """

    @abstractmethod
    async def ingest(self, scope: MemoryScope, events: Iterable[SessionEvent]) -> int:
        """Append an entry per text-bearing event. Returns entries created.

        Not idempotent: ingesting the same events twice duplicates them.
        """

    @abstractmethod
    async def search(self, scope: MemoryScope, query: str) -> list[MemoryEntry]:
        """Entries containing any query token, in ingestion order."""

    @abstractmethod
    async def count(self, scope: MemoryScope) -> int:
        """Number of entries stored for scope."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryMemoryService(MemoryService):
    """Memory index held in process memory."""

    def __init__(self):
        self._entries: dict[MemoryScope, list[MemoryEntry]] = {}
        self._lock = threading.Lock()

    async def ingest(self, scope: MemoryScope, events: Iterable[SessionEvent]) -> int:
        entries = entries_from_events(events)
        with self._lock:
            self._entries.setdefault(scope, []).extend(entries)
        logger.debug("Ingested %d memory entries for %s", len(entries), scope)
        return len(entries)

    async def search(self, scope: MemoryScope, query: str) -> list[MemoryEntry]:
        tokens = query_tokens(query)
        if not tokens:
            return []
        with self._lock:
            entries = list(self._entries.get(scope, ()))
        # Copies: Content inside a frozen entry is still mutable
        return [entry.model_copy(deep=True) for entry in entries if matches(entry.text, tokens)]

    async def count(self, scope: MemoryScope) -> int:
        with self._lock:
            return len(self._entries.get(scope, ()))


_CLIENT_ERRORS = (UnexpectedResponse, ResponseHandlingException, RuntimeError, OSError)


class QdrantMemoryService(MemoryService):
    """Memory index persisted in Qdrant.

    Design decisions:
    - One collection shared by all scopes, filtered on tenant/user payload
    - Random uuid4 point ids, so services sharing a collection never
      overwrite each other's entries
    - Ingestion order kept in the payload as (ingested_ns, position) and
      restored by sorting after the scroll
    - Matching runs client-side with the same keyword matcher as the
      in-memory index; the single-dimension vector only satisfies the
      collection schema
    """

    SCROLL_PAGE_SIZE = 256

    def __init__(self, config: Optional[dict] = None, client: Optional[QdrantClient] = None):
        """Initialize Qdrant-backed memory.

        Args:
            config: Optional configuration:
                - qdrant_path: Embedded database directory (default: in memory)
                - collection: Collection name (default: memory_entries)
            client: Pre-built client, overrides qdrant_path

        Raises:
            UnavailableError: If Qdrant cannot be opened
        """
        config = config or {}
        self.collection = config.get("collection") or "memory_entries"
        self._lock = threading.Lock()

        try:
            if client is None:
                path = config.get("qdrant_path")
                client = QdrantClient(path=path) if path else QdrantClient(location=":memory:")
            self.client = client
            self._ensure_collection()
            existing = self.client.count(collection_name=self.collection, exact=True).count
        except _CLIENT_ERRORS as exc:
            raise UnavailableError(f"Cannot open Qdrant memory index: {exc}") from exc

        logger.info(
            "Qdrant memory index ready (collection=%s, entries=%d)",
            self.collection,
            existing,
        )
        self._last_ns = 0

    def _ensure_collection(self):
        """Create collection if it doesn't exist."""
        collections = self.client.get_collections().collections
        collection_names = [c.name for c in collections]

        if self.collection not in collection_names:
            self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=1, distance=Distance.DOT),
            )

    @staticmethod
    def _scope_filter(scope: MemoryScope) -> Filter:
        return Filter(
            must=[
                FieldCondition(key="tenant", match=MatchValue(value=scope.tenant)),
                FieldCondition(key="user", match=MatchValue(value=scope.user)),
            ]
        )

    async def ingest(self, scope: MemoryScope, events: Iterable[SessionEvent]) -> int:
        entries = entries_from_events(events)
        if not entries:
            return 0

        with self._lock:
            # Strictly increasing within this process even if the clock stalls
            ingested_ns = max(time.time_ns(), self._last_ns + 1)
            self._last_ns = ingested_ns
            points = [
                PointStruct(
                    id=str(uuid4()),
                    vector=[1.0],
                    payload={
                        "tenant": scope.tenant,
                        "user": scope.user,
                        "author": entry.author,
                        "timestamp": entry.timestamp.isoformat(),
                        "text": entry.text,
                        "content": entry.content.model_dump_json(),
                        "ingested_ns": ingested_ns,
                        "position": position,
                    },
                )
                for position, entry in enumerate(entries)
            ]
            try:
                self.client.upsert(collection_name=self.collection, points=points, wait=True)
            except _CLIENT_ERRORS as exc:
                raise UnavailableError(f"Failed to ingest memory entries: {exc}") from exc

        logger.debug("Ingested %d memory entries for %s", len(entries), scope)
        return len(entries)

    def _scroll(self, scope: MemoryScope) -> list:
        points = []
        offset = None
        try:
            while True:
                batch, offset = self.client.scroll(
                    collection_name=self.collection,
                    scroll_filter=self._scope_filter(scope),
                    limit=self.SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                )
                points.extend(batch)
                if offset is None:
                    break
        except _CLIENT_ERRORS as exc:
            raise UnavailableError(f"Failed to read memory entries: {exc}") from exc
        points.sort(
            key=lambda point: (
                point.payload.get("ingested_ns", 0),
                point.payload.get("position", 0),
            )
        )
        return points

    @staticmethod
    def _to_entry(payload: dict) -> MemoryEntry:
        try:
            return MemoryEntry(
                content=Content.model_validate_json(payload["content"]),
                author=payload["author"],
                timestamp=datetime.fromisoformat(payload["timestamp"]),
            )
        except (KeyError, ValueError, ValidationError) as exc:
            raise UnavailableError(f"Corrupt memory entry payload: {exc}") from exc

    async def search(self, scope: MemoryScope, query: str) -> list[MemoryEntry]:
        tokens = query_tokens(query)
        if not tokens:
            return []
        return [
            self._to_entry(point.payload)
            for point in self._scroll(scope)
            if matches(point.payload.get("text", ""), tokens)
        ]

    async def count(self, scope: MemoryScope) -> int:
        try:
            result = self.client.count(
                collection_name=self.collection,
                count_filter=self._scope_filter(scope),
                exact=True,
            )
        except _CLIENT_ERRORS as exc:
            raise UnavailableError(f"Failed to count memory entries: {exc}") from exc
        return result.count

    def close(self) -> None:
        self.client.close()
        logger.info("Qdrant memory index closed")
