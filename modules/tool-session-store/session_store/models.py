"""Data models for artifacts, memory entries and their identity keys."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import InvalidArgumentError

ID_PATTERN = re.compile(r"^[A-Za-z0-9_@-][A-Za-z0-9_.@-]*$")


def _validate_id(field: str, value: str) -> None:
    if not isinstance(value, str) or not ID_PATTERN.match(value):
        raise InvalidArgumentError(
            f"Invalid {field}: {value!r}. "
            "Only alphanumeric, underscore, hyphen, dot and @ allowed "
            "(no leading dot)."
        )


@dataclass(frozen=True)
class MemoryScope:
    """Partition of the memory index: one user within one tenant."""

    tenant: str
    user: str

    def __post_init__(self):
        _validate_id("tenant", self.tenant)
        _validate_id("user", self.user)


@dataclass(frozen=True)
class IdentityKey:
    """Composite key scoping every stored object.

    Artifacts are scoped to the full triple; memory only to
    ``(tenant, user)``, see :attr:`scope`.
    """

    tenant: str
    user: str
    session: str

    def __post_init__(self):
        _validate_id("tenant", self.tenant)
        _validate_id("user", self.user)
        _validate_id("session", self.session)

    @property
    def scope(self) -> MemoryScope:
        return MemoryScope(tenant=self.tenant, user=self.user)


# Parts are serialized as JSON; raw bytes travel base64-encoded.
_PART_CONFIG = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")


class TextPart(BaseModel):
    model_config = _PART_CONFIG

    type: Literal["text"] = "text"
    text: str


class InlineDataPart(BaseModel):
    model_config = _PART_CONFIG

    type: Literal["inline_data"] = "inline_data"
    mime_type: str = "application/octet-stream"
    data: bytes


class FunctionCallPart(BaseModel):
    model_config = _PART_CONFIG

    type: Literal["function_call"] = "function_call"
    name: str
    args: dict[str, Any] = {}


class FunctionResponsePart(BaseModel):
    model_config = _PART_CONFIG

    type: Literal["function_response"] = "function_response"
    name: str
    response: dict[str, Any] = {}


Part = Annotated[
    Union[TextPart, InlineDataPart, FunctionCallPart, FunctionResponsePart],
    Field(discriminator="type"),
]

part_adapter: TypeAdapter = TypeAdapter(Part)


class Content(BaseModel):
    """A message: a role and its ordered parts."""

    model_config = _PART_CONFIG

    role: str = "user"
    parts: list[Part] = []

    @classmethod
    def from_text(cls, text: str, role: str = "user") -> "Content":
        return cls(role=role, parts=[TextPart(text=text)])

    @property
    def text(self) -> str:
        """Text parts joined by a single space."""
        return " ".join(p.text for p in self.parts if isinstance(p, TextPart) and p.text)


class SessionEvent(BaseModel):
    """One entry of a session's event log, pushed in by the session service."""

    author: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    content: Optional[Content] = None

    def has_text(self) -> bool:
        return self.content is not None and bool(self.content.text.strip())


class MemoryEntry(BaseModel):
    """Immutable, authored and timestamped record in the memory index."""

    model_config = ConfigDict(frozen=True)

    content: Content
    author: str
    timestamp: datetime

    @property
    def text(self) -> str:
        return self.content.text


class LlmRequest(BaseModel):
    """The slice of an LLM request that tools may rewrite."""

    contents: list[Content] = []
    system_instruction: str = ""

    def append_instructions(self, *lines: str) -> None:
        block = "\n\n".join(lines)
        if self.system_instruction:
            self.system_instruction = f"{self.system_instruction}\n\n{block}"
        else:
            self.system_instruction = block


class ToolResult(BaseModel):
    """Outcome of a tool execution."""

    success: bool
    output: Any = None
    error: Optional[dict[str, Any]] = None
