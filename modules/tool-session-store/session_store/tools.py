"""Agent tools for session artifacts and memory."""

import json
from typing import Any, Optional

from .errors import StoreError
from .models import Content, FunctionResponsePart, IdentityKey, LlmRequest, TextPart, ToolResult
from .services import StoreServices
from .session import SessionArtifacts, SessionMemory


def _failure(message: str, kind: str = "invalid_argument") -> ToolResult:
    return ToolResult(success=False, output=None, error={"message": message, "kind": kind})


def _names_error(names: Any) -> Optional[str]:
    """Why names is not a list of non-empty strings, or None if it is."""
    if not isinstance(names, list):
        return "artifact_names must be an array"
    for name in names:
        if not isinstance(name, str) or not name.strip():
            return "Artifact names must be non-empty strings"
    return None


class LoadArtifactsTool:
    """Tool for loading session artifacts into the conversation."""

    def __init__(self, artifacts: SessionArtifacts):
        self.artifacts = artifacts
        self.name = "load_artifacts"
        self.description = "Loads the artifacts and adds them to the session."
        self.input_schema = {
            "type": "object",
            "properties": {
                "artifact_names": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Names of the artifacts to load",
                },
            },
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        """Echo the requested names; contents are attached by process_request."""
        names = input.get("artifact_names", [])

        error = _names_error(names)
        if error:
            return _failure(error)

        return ToolResult(success=True, output={"artifact_names": names})

    async def process_request(self, request: LlmRequest) -> None:
        """Advertise available artifacts and attach any just requested.

        When the latest content answers a ``load_artifacts`` call, one user
        content per requested artifact is appended to the request. Responses
        whose artifact_names is not a list of names are ignored.
        """
        names = await self.artifacts.list()
        if not names:
            return

        request.append_instructions(
            f"You have a list of artifacts:\n  {json.dumps(names)}",
            "When the user asks questions about any of the artifacts, you should "
            "call the `load_artifacts` function to load the artifact. Do not "
            "generate any text other than the function call.",
        )

        if not request.contents:
            return
        for part in request.contents[-1].parts:
            if not isinstance(part, FunctionResponsePart) or part.name != self.name:
                continue
            requested = part.response.get("artifact_names", [])
            if _names_error(requested):
                continue
            for name in requested:
                loaded = await self.artifacts.load(name)
                request.contents.append(
                    Content(role="user", parts=[TextPart(text=f"Artifact {name} is:"), loaded])
                )


class LoadMemoryTool:
    """Tool for searching the user's memory."""

    def __init__(self, memory: SessionMemory):
        self.memory = memory
        self.name = "load_memory"
        self.description = "Search past conversations of this user by keyword"
        self.input_schema = {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keywords; entries matching any word are returned",
                },
            },
            "required": ["query"],
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        """Search memory."""
        query = input.get("query", "")

        if not isinstance(query, str) or not query.strip():
            return _failure("Query cannot be empty")

        try:
            entries = await self.memory.search(query)
        except StoreError as e:
            return _failure(e.message, e.kind)

        results = [
            {
                "author": entry.author,
                "timestamp": entry.timestamp.isoformat(),
                "text": entry.text,
            }
            for entry in entries
        ]

        return ToolResult(success=True, output={"memories": results, "count": len(results)})


def mount(services: StoreServices, key: IdentityKey) -> list:
    """Build the session tools for one identity key.

    Args:
        services: Process-wide store services
        key: Identity of the current session

    Returns:
        List of tool instances
    """
    return [
        LoadArtifactsTool(services.artifacts_for(key)),
        LoadMemoryTool(services.memory_for(key)),
    ]
