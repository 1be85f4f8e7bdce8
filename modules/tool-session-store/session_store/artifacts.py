"""Versioned artifact storage scoped by identity key."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote, unquote

from pydantic import ValidationError

from .config import DEFAULT_STORAGE_ROOT
from .errors import InvalidArgumentError, NotFoundError, UnavailableError
from .models import IdentityKey, Part, part_adapter

logger = logging.getLogger(__name__)

_ARTIFACT_SUFFIX = ".artifact"
_MAX_SEGMENT_BYTES = 255
_LOCK_STRIPES = 64


def _validate_save(name: str, part: Any) -> Part:
    """Check the name and return a private copy of the part."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("Artifact name cannot be empty")
    try:
        part = part_adapter.validate_python(part)
    except ValidationError as exc:
        raise InvalidArgumentError(f"Invalid artifact part for {name!r}: {exc}") from exc
    return part.model_copy(deep=True)


def _missing(key: IdentityKey, name: str, version: Optional[int] = None) -> NotFoundError:
    if version is None:
        return NotFoundError(f"Artifact {name!r} not found in session {key.session!r}")
    return NotFoundError(
        f"Artifact {name!r} has no version {version} in session {key.session!r}"
    )


class ArtifactService(ABC):
    """Capability shared by every artifact backend.

    Versions are numbered densely from 0 per ``(key, name)``; saving never
    mutates an earlier version.
    """

    @abstractmethod
    async def save(self, key: IdentityKey, name: str, part: Part) -> int:
        """Append a new version and return its number."""

    @abstractmethod
    async def load(
        self, key: IdentityKey, name: str, version: Optional[int] = None
    ) -> Part:
        """Return the given version, or the latest when version is None."""

    @abstractmethod
    async def list_names(self, key: IdentityKey) -> list[str]:
        """Return every artifact name saved under key, sorted."""

    @abstractmethod
    async def list_versions(self, key: IdentityKey, name: str) -> list[int]:
        """Return the version numbers of one artifact."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryArtifactService(ArtifactService):
    """Artifact storage held in process memory.

    A single lock covers version assignment and reads, so concurrent saves
    of the same name from threads or coroutines get distinct, contiguous
    version numbers.
    """

    def __init__(self):
        self._artifacts: dict[IdentityKey, dict[str, list[Part]]] = {}
        self._lock = threading.Lock()

    async def save(self, key: IdentityKey, name: str, part: Part) -> int:
        stored = _validate_save(name, part)
        with self._lock:
            versions = self._artifacts.setdefault(key, {}).setdefault(name, [])
            versions.append(stored)
            version = len(versions) - 1
        logger.debug("Saved artifact %r version %d for %s", name, version, key)
        return version

    async def load(
        self, key: IdentityKey, name: str, version: Optional[int] = None
    ) -> Part:
        with self._lock:
            versions = self._artifacts.get(key, {}).get(name)
            if not versions:
                raise _missing(key, name)
            if version is None:
                part = versions[-1]
            elif 0 <= version < len(versions):
                part = versions[version]
            else:
                raise _missing(key, name, version)
        return part.model_copy(deep=True)

    async def list_names(self, key: IdentityKey) -> list[str]:
        with self._lock:
            return sorted(self._artifacts.get(key, {}))

    async def list_versions(self, key: IdentityKey, name: str) -> list[int]:
        with self._lock:
            versions = self._artifacts.get(key, {}).get(name)
            if not versions:
                raise _missing(key, name)
            return list(range(len(versions)))


class FileArtifactService(ArtifactService):
    """Artifact storage on the local filesystem.

    Layout::

        <storage_root>/artifacts/<tenant>/<user>/<session>/<quoted name>.artifact/
            0.json
            1.json

    Each version file holds the JSON form of one part. Version assignment is
    serialized per ``(key, name)`` within this process through a fixed pool
    of striped locks.
    """

    def __init__(self, config: Optional[dict] = None):
        """Initialize file storage.

        Args:
            config: Optional configuration:
                - storage_root: Base directory (default: ~/.amplifier/session-store)

        Raises:
            UnavailableError: If the storage directory cannot be created
        """
        config = config or {}
        storage_root = config.get("storage_root") or DEFAULT_STORAGE_ROOT
        self.root = Path(storage_root).expanduser() / "artifacts"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise UnavailableError(f"Cannot create artifact root {self.root}: {exc}") from exc

        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]
        logger.info("File artifact storage at %s", self.root)

    def _session_dir(self, key: IdentityKey) -> Path:
        return self.root / key.tenant / key.user / key.session

    def _artifact_dir(self, key: IdentityKey, name: str) -> Path:
        # Suffix keeps names such as "." or ".." from becoming special paths
        segment = quote(name, safe="") + _ARTIFACT_SUFFIX
        if len(segment.encode()) > _MAX_SEGMENT_BYTES:
            raise InvalidArgumentError(
                f"Artifact name too long: {len(name)} chars quote to "
                f"{len(segment)} bytes (max {_MAX_SEGMENT_BYTES})"
            )
        return self._session_dir(key) / segment

    def _lock_for(self, key: IdentityKey, name: str) -> threading.Lock:
        return self._locks[hash((key, name)) % _LOCK_STRIPES]

    @staticmethod
    def _versions_in(artifact_dir: Path) -> list[int]:
        if not artifact_dir.is_dir():
            return []
        return sorted(int(p.stem) for p in artifact_dir.glob("*.json") if p.stem.isdigit())

    async def save(self, key: IdentityKey, name: str, part: Part) -> int:
        stored = _validate_save(name, part)
        artifact_dir = self._artifact_dir(key, name)
        payload = part_adapter.dump_json(stored)

        with self._lock_for(key, name):
            try:
                artifact_dir.mkdir(parents=True, exist_ok=True)
                version = len(self._versions_in(artifact_dir))
                target = artifact_dir / f"{version}.json"
                tmp = artifact_dir / f"{version}.json.tmp"
                tmp.write_bytes(payload)
                os.replace(tmp, target)
            except OSError as exc:
                raise UnavailableError(f"Failed to save artifact {name!r}: {exc}") from exc

        logger.debug("Saved artifact %r version %d to %s", name, version, artifact_dir)
        return version

    async def load(
        self, key: IdentityKey, name: str, version: Optional[int] = None
    ) -> Part:
        artifact_dir = self._artifact_dir(key, name)
        try:
            versions = self._versions_in(artifact_dir)
            if not versions:
                raise _missing(key, name)
            if version is None:
                version = versions[-1]
            elif version not in versions:
                raise _missing(key, name, version)
            raw = (artifact_dir / f"{version}.json").read_bytes()
        except OSError as exc:
            raise UnavailableError(f"Failed to load artifact {name!r}: {exc}") from exc

        try:
            return part_adapter.validate_json(raw)
        except ValidationError as exc:
            raise UnavailableError(
                f"Artifact {name!r} version {version} is corrupt: {exc}"
            ) from exc

    async def list_names(self, key: IdentityKey) -> list[str]:
        session_dir = self._session_dir(key)
        try:
            if not session_dir.is_dir():
                return []
            names = [
                unquote(entry.name[: -len(_ARTIFACT_SUFFIX)])
                for entry in session_dir.iterdir()
                if entry.name.endswith(_ARTIFACT_SUFFIX) and self._versions_in(entry)
            ]
        except OSError as exc:
            raise UnavailableError(f"Failed to list artifacts: {exc}") from exc
        return sorted(names)

    async def list_versions(self, key: IdentityKey, name: str) -> list[int]:
        try:
            versions = self._versions_in(self._artifact_dir(key, name))
        except OSError as exc:
            raise UnavailableError(f"Failed to list versions of {name!r}: {exc}") from exc
        if not versions:
            raise _missing(key, name)
        return versions
