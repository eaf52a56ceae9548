"""
Filesystem tools exposed to the model during an agent run.

Every path the model supplies is resolved against the workspace root and rejected before any I/O if
it escapes that root.  Handlers never raise: failures come back as an :class:`AgentToolInvocation`
flagged as an error, so the model can read the message and try something else.
"""

import json
import logging
from pathlib import Path
from typing import (
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
)

from rapidcli.core.schema import (
    AgentToolInvocation,
    ToolCall,
    ToolDefinition,
)
from rapidcli.tools import (
    ToolSchema,
    build_tool_definitions,
)

logger = logging.getLogger(__name__)

MAX_LISTED_DIRECTORIES = 200
MAX_LISTED_FILES = 400
WRITES_DISABLED = "File write operations are disabled by configuration."

FILESYSTEM_TOOL_SCHEMAS: Mapping[str, ToolSchema] = {
    "list_directory": {
        "description": "List directories and files relative to the agent workspace.",
        "parameters": {
            "path": {
                "type": "string",
                "description": "Relative directory path. Defaults to the workspace root.",
                "required": False,
            },
        },
    },
    "read_file": {
        "description": "Read a UTF-8 text file from the workspace.",
        "parameters": {
            "path": {
                "type": "string",
                "description": "Relative file path to open.",
                "required": True,
            },
            "max_bytes": {
                "type": "integer",
                "description": "Optional maximum number of characters to return.",
                "required": False,
                "minimum": 1,
            },
        },
    },
    "write_file": {
        "description": "Overwrite a file with the provided UTF-8 content.",
        "parameters": {
            "path": {
                "type": "string",
                "description": "Relative file path to write.",
                "required": True,
            },
            "content": {
                "type": "string",
                "description": "Full file contents encoded as UTF-8 text.",
                "required": True,
            },
        },
    },
    "append_file": {
        "description": "Append UTF-8 text to a file within the workspace.",
        "parameters": {
            "path": {
                "type": "string",
                "description": "Relative file path to append.",
                "required": True,
            },
            "content": {
                "type": "string",
                "description": "Text to append to the file.",
                "required": True,
            },
        },
    },
}


class SandboxViolation(PermissionError):
    """Raised when a path resolves outside the workspace root."""


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------
class _Arguments(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ListDirectoryArguments(_Arguments):
    path: Optional[str] = None


class ReadFileArguments(_Arguments):
    path: str = ""
    max_bytes: Optional[int] = None


class WriteFileArguments(_Arguments):
    path: str = ""
    content: Optional[str] = None


def _parse(model: type, arguments: str):
    if not arguments or not arguments.strip():
        return model()
    return model.model_validate_json(arguments)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------
class FileSystemToolDispatcher:
    """Executes filesystem tool calls inside a single workspace root."""

    def __init__(self, workspace_root: str | Path, allow_writes: bool = True) -> None:
        root = Path(workspace_root).expanduser()
        root.mkdir(parents=True, exist_ok=True)
        self.root = root.resolve()
        self.allow_writes = allow_writes
        self.tool_definitions: List[ToolDefinition] = build_tool_definitions(
            FILESYSTEM_TOOL_SCHEMAS
        )
        self._handlers: Dict[str, Callable[[str], AgentToolInvocation]] = {
            "list_directory": self._list_directory,
            "read_file": self._read_file,
            "write_file": self._write_file,
            "append_file": self._append_file,
        }

    def execute(self, tool_call: ToolCall) -> AgentToolInvocation:
        """Run *tool_call* and return its invocation record. Never raises."""
        name = tool_call.function.name
        arguments = tool_call.function.arguments
        handler = self._handlers.get(name)
        if handler is None:
            return AgentToolInvocation.failure(name, arguments, f"Tool '{name}' is not supported.")
        try:
            return handler(arguments)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Tool %s failed with arguments %s: %s", name, arguments, e)
            return AgentToolInvocation.failure(name, arguments, str(e))

    def resolve_path(self, path: str) -> Path:
        """
        Resolve *path* against the workspace root.

        Raises
        ------
        SandboxViolation
            If the canonical path lies outside the workspace root.
        """
        candidate = (self.root / path).resolve()
        if not candidate.is_relative_to(self.root):
            raise SandboxViolation("Attempted to access a path outside of the workspace root.")
        return candidate

    def to_relative(self, path: Path) -> str:
        relative = path.relative_to(self.root).as_posix()
        return relative or "."

    # -- handlers ----------------------------------------------------------
    def _list_directory(self, arguments: str) -> AgentToolInvocation:
        args = _parse(ListDirectoryArguments, arguments)
        target = self.resolve_path(args.path or ".")
        if not target.is_dir():
            return AgentToolInvocation.failure(
                "list_directory", arguments, f"Directory '{args.path}' was not found."
            )

        entries = list(target.iterdir())
        directories = sorted((self.to_relative(p) for p in entries if p.is_dir()), key=str.lower)
        files = sorted((self.to_relative(p) for p in entries if p.is_file()), key=str.lower)
        output = json.dumps(
            {
                "path": self.to_relative(target),
                "directories": directories[:MAX_LISTED_DIRECTORIES],
                "files": files[:MAX_LISTED_FILES],
            },
            indent=2,
        )
        return AgentToolInvocation.success("list_directory", arguments, output)

    def _read_file(self, arguments: str) -> AgentToolInvocation:
        args = _parse(ReadFileArguments, arguments)
        if not args.path.strip():
            return AgentToolInvocation.failure(
                "read_file", arguments, "The 'path' argument is required."
            )
        target = self.resolve_path(args.path)
        if not target.is_file():
            return AgentToolInvocation.failure(
                "read_file", arguments, f"File '{args.path}' was not found."
            )

        content = target.read_text(encoding="utf-8", errors="replace")
        if args.max_bytes is not None and 0 < args.max_bytes < len(content):
            content = content[: args.max_bytes]
        output = f"FILE: {self.to_relative(target)}\n```text\n{content}\n```\n"
        return AgentToolInvocation.success("read_file", arguments, output)

    def _write_file(self, arguments: str) -> AgentToolInvocation:
        return self._write("write_file", arguments, append=False)

    def _append_file(self, arguments: str) -> AgentToolInvocation:
        return self._write("append_file", arguments, append=True)

    def _write(self, name: str, arguments: str, append: bool) -> AgentToolInvocation:
        if not self.allow_writes:
            return AgentToolInvocation.failure(name, arguments, WRITES_DISABLED)

        args = _parse(WriteFileArguments, arguments)
        if not args.path.strip():
            return AgentToolInvocation.failure(name, arguments, "The 'path' argument is required.")
        target = self.resolve_path(args.path)
        target.parent.mkdir(parents=True, exist_ok=True)

        content = args.content or ""
        with open(target, "a" if append else "w", encoding="utf-8") as f:
            f.write(content)
        verb = "APPENDED_FILE" if append else "WROTE_FILE"
        return AgentToolInvocation.success(
            name, arguments, f"{verb} {self.to_relative(target)} bytes={len(content)}"
        )
