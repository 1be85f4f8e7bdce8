"""Integration tests for file-backed artifact storage.

Exercises the real filesystem layout under pytest's tmp_path.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from session_store.artifacts import FileArtifactService
from session_store.errors import InvalidArgumentError, NotFoundError, UnavailableError
from session_store.models import FunctionCallPart, IdentityKey, InlineDataPart, TextPart

pytestmark = pytest.mark.integration


@pytest.fixture
def config(tmp_path):
    return {"storage_root": str(tmp_path)}


@pytest.fixture
def service(config):
    return FileArtifactService(config)


@pytest.fixture
def key():
    return IdentityKey("app", "alice", "s1")


@pytest.mark.asyncio
class TestFileArtifactService:
    async def test_versions_and_latest(self, service, key):
        for i in range(3):
            assert await service.save(key, "notes.md", TextPart(text=f"rev {i}")) == i

        assert (await service.load(key, "notes.md")).text == "rev 2"
        assert (await service.load(key, "notes.md", version=0)).text == "rev 0"
        assert await service.list_versions(key, "notes.md") == [0, 1, 2]

    async def test_survives_restart(self, config, service, key):
        """A new service over the same root sees earlier saves."""
        await service.save(key, "report.txt", TextPart(text="first"))
        await service.save(key, "report.txt", TextPart(text="second"))

        reopened = FileArtifactService(config)

        assert (await reopened.load(key, "report.txt")).text == "second"
        assert await reopened.save(key, "report.txt", TextPart(text="third")) == 2

    async def test_path_like_names(self, service, key, tmp_path):
        """Names with separators or dots stay inside the session directory."""
        names = ["reports/2025/q1.csv", "..", ".", "a b%c"]
        for name in names:
            await service.save(key, name, TextPart(text=name))

        assert await service.list_names(key) == sorted(names)
        for name in names:
            assert (await service.load(key, name)).text == name
        assert not (tmp_path / "artifacts" / "app" / "alice" / "reports").exists()

    async def test_overlong_name_is_invalid(self, service, key):
        """Names too long for one path segment are rejected, not a medium failure."""
        name = "x" * 300

        with pytest.raises(InvalidArgumentError) as excinfo:
            await service.save(key, name, TextPart(text="x"))

        assert excinfo.value.kind == "invalid_argument"
        assert excinfo.value.status_code == 400
        with pytest.raises(InvalidArgumentError):
            await service.load(key, name)
        assert await service.list_names(key) == []

    async def test_longest_name_that_fits(self, service, key):
        name = "y" * (255 - len(".artifact"))

        assert await service.save(key, name, TextPart(text="ok")) == 0
        assert (await service.load(key, name)).text == "ok"

    async def test_all_part_kinds_round_trip(self, service, key):
        binary = InlineDataPart(mime_type="image/png", data=bytes(range(256)))
        call = FunctionCallPart(name="render", args={"width": 640, "tags": ["a"]})

        await service.save(key, "image.png", binary)
        await service.save(key, "call.json", call)

        assert await service.load(key, "image.png") == binary
        assert await service.load(key, "call.json") == call

    async def test_list_is_scoped_to_session(self, service, key):
        await service.save(key, "artifact1.txt", TextPart(text="content1"))
        await service.save(key, "artifact2.log", TextPart(text="content2"))
        other = IdentityKey("app", "alice", "s2")

        assert await service.list_names(key) == ["artifact1.txt", "artifact2.log"]
        assert await service.list_names(other) == []

    async def test_missing_artifact_and_version(self, service, key):
        with pytest.raises(NotFoundError):
            await service.load(key, "nothing")

        await service.save(key, "one", TextPart(text="x"))
        with pytest.raises(NotFoundError):
            await service.load(key, "one", version=1)

    async def test_corrupt_version_is_unavailable(self, service, key, tmp_path):
        """Undecodable data is reported as a medium failure, not a miss."""
        await service.save(key, "broken", TextPart(text="x"))
        version_file = next((tmp_path / "artifacts").rglob("0.json"))
        version_file.write_text("{not json")

        with pytest.raises(UnavailableError, match="corrupt") as excinfo:
            await service.load(key, "broken")

        assert excinfo.value.status_code == 503

    async def test_concurrent_saves_from_threads(self, service, key):
        n = 40

        def save(i):
            return asyncio.run(service.save(key, "log.txt", TextPart(text=str(i))))

        with ThreadPoolExecutor(max_workers=8) as pool:
            versions = list(pool.map(save, range(n)))

        assert sorted(versions) == list(range(n))
        assert await service.list_versions(key, "log.txt") == list(range(n))


def test_unwritable_root_is_unavailable(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")

    with pytest.raises(UnavailableError):
        FileArtifactService({"storage_root": str(blocker)})


@pytest.mark.asyncio
async def test_lock_pool_is_bounded(service, key):
    for i in range(200):
        await service.save(key, f"note-{i}", TextPart(text=str(i)))

    assert len(service._locks) == 64
    assert len(await service.list_names(key)) == 200
