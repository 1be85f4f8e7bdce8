"""Unit tests for data models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from session_store.errors import InvalidArgumentError
from session_store.models import (
    Content,
    FunctionCallPart,
    FunctionResponsePart,
    IdentityKey,
    InlineDataPart,
    LlmRequest,
    MemoryEntry,
    MemoryScope,
    SessionEvent,
    TextPart,
    part_adapter,
)


class TestIdentityKey:
    """Unit tests for identity keys and scopes."""

    def test_structural_equality_and_hashing(self):
        """Keys with equal fields are equal and usable as dict keys."""
        a = IdentityKey("app", "alice", "s1")
        b = IdentityKey("app", "alice", "s1")

        assert a == b
        assert {a: 1}[b] == 1
        assert a != IdentityKey("app", "alice", "s2")

    def test_immutable(self):
        """Keys cannot be modified after construction."""
        key = IdentityKey("app", "alice", "s1")

        with pytest.raises(AttributeError):
            key.user = "bob"

    def test_scope_drops_session(self):
        """Scope keeps tenant and user only."""
        key = IdentityKey("app", "alice", "s1")

        assert key.scope == MemoryScope("app", "alice")
        assert IdentityKey("app", "alice", "s2").scope == key.scope

    @pytest.mark.parametrize(
        "tenant, user, session",
        [
            ("", "alice", "s1"),
            ("app", "", "s1"),
            ("app", "alice", ""),
            ("app", "../alice", "s1"),
            ("app", "alice/bob", "s1"),
            ("app", "alice", ".."),
            ("app", "alice bob", "s1"),
        ],
    )
    def test_rejects_malformed_components(self, tenant, user, session):
        """Empty, path-like and whitespace components are rejected."""
        with pytest.raises(InvalidArgumentError, match="Invalid"):
            IdentityKey(tenant, user, session)

    def test_accepts_common_identifiers(self):
        """Emails, dotted names and uuids are accepted."""
        key = IdentityKey("my.app", "alice@example.com", "3f2b-11aa_x")

        assert key.user == "alice@example.com"

    def test_invalid_argument_is_value_error(self):
        """Callers catching ValueError still see malformed keys."""
        with pytest.raises(ValueError):
            MemoryScope("app", "")


class TestParts:
    """Unit tests for the part union."""

    def test_discriminates_on_type(self):
        """Dicts validate into the matching part class."""
        assert isinstance(part_adapter.validate_python({"type": "text", "text": "hi"}), TextPart)
        assert isinstance(
            part_adapter.validate_python({"type": "function_call", "name": "f", "args": {"x": 1}}),
            FunctionCallPart,
        )
        assert isinstance(
            part_adapter.validate_python({"type": "function_response", "name": "f"}),
            FunctionResponsePart,
        )

    def test_unknown_type_rejected(self):
        """Payload shapes outside the union are rejected."""
        with pytest.raises(ValidationError):
            part_adapter.validate_python({"type": "video", "url": "x"})

    def test_inline_data_survives_json(self):
        """Binary data is base64 encoded in JSON and restored exactly."""
        part = InlineDataPart(mime_type="image/png", data=b"\x89PNG\x00\xff")

        restored = part_adapter.validate_json(part_adapter.dump_json(part))

        assert restored == part


class TestContent:
    """Unit tests for message content."""

    def test_from_text(self):
        content = Content.from_text("The quick brown fox", "model")

        assert content.role == "model"
        assert content.parts == [TextPart(text="The quick brown fox")]
        assert content.text == "The quick brown fox"

    def test_text_skips_non_text_parts(self):
        """Only text parts contribute to text."""
        content = Content(
            parts=[
                TextPart(text="hello"),
                FunctionCallPart(name="lookup", args={"q": "fox"}),
                TextPart(text="world"),
            ]
        )

        assert content.text == "hello world"

    def test_event_has_text(self):
        now = datetime.now(timezone.utc)

        assert SessionEvent(author="u", timestamp=now, content=Content.from_text("x")).has_text()
        assert not SessionEvent(author="u", timestamp=now).has_text()
        assert not SessionEvent(author="u", timestamp=now, content=Content.from_text("  ")).has_text()
        assert not SessionEvent(
            author="u",
            timestamp=now,
            content=Content(parts=[FunctionCallPart(name="f")]),
        ).has_text()


class TestMemoryEntry:
    """Unit tests for memory entries."""

    def test_entry_is_frozen(self):
        entry = MemoryEntry(
            content=Content.from_text("fox"),
            author="user1",
            timestamp=datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc),
        )

        with pytest.raises(ValidationError):
            entry.author = "someone else"

        assert entry.text == "fox"


class TestLlmRequest:
    def test_append_instructions(self):
        request = LlmRequest()

        request.append_instructions("first")
        request.append_instructions("second", "third")

        assert request.system_instruction == "first\n\nsecond\n\nthird"
