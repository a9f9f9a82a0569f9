"""Tool schema offered to the model and typed arguments for each tool.

The schema here is provider-neutral. Each adapter translates ``TOOLS`` into
its own declaration format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from sentinel_core.errors import InvalidArguments, UnknownTool

# Set by adapters on ToolCall.arguments when the provider sent arguments that
# could not be decoded. The value is the decode error message.
INVALID_ARGUMENTS_KEY = "_invalid_arguments"


@dataclass(frozen=True)
class ToolParameter:
    name: str
    description: str
    required: bool = True
    type: str = "string"


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()

    def json_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {p.name: {"type": p.type, "description": p.description} for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }


TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="read_file",
        description="Read the contents of a file. Use this to understand imports, types, or related code.",
        parameters=(ToolParameter("path", "Relative path to the file from repository root"),),
    ),
    ToolSpec(
        name="list_files",
        description="List files in a directory. Use this to explore project structure or find related files.",
        parameters=(
            ToolParameter("directory", 'Relative path to directory (use "." for root)'),
            ToolParameter("pattern", 'Optional glob pattern to filter files (e.g., "*.ts")', required=False),
        ),
    ),
    ToolSpec(
        name="search_code",
        description=(
            "Search for code patterns in the repository. "
            "Use this to find function definitions, usages, or related code."
        ),
        parameters=(
            ToolParameter("query", "Search query (regex pattern)"),
            ToolParameter("path", "Optional directory to limit search scope", required=False),
        ),
    ),
    ToolSpec(
        name="get_structure",
        description="Get the project directory structure. Use this to understand the overall codebase organization.",
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {t.name: t for t in TOOLS}


# ---------------------------------------------------------------------- #
# Typed arguments                                                          #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class ReadFileArgs:
    path: str


@dataclass(frozen=True)
class ListFilesArgs:
    directory: str
    pattern: str | None = None


@dataclass(frozen=True)
class SearchCodeArgs:
    query: str
    path: str | None = None


@dataclass(frozen=True)
class GetStructureArgs:
    pass


ToolArgs = Union[ReadFileArgs, ListFilesArgs, SearchCodeArgs, GetStructureArgs]

_ARGS_BY_TOOL: dict[str, type] = {
    "read_file": ReadFileArgs,
    "list_files": ListFilesArgs,
    "search_code": SearchCodeArgs,
    "get_structure": GetStructureArgs,
}


def parse_arguments(name: str, arguments: Any) -> ToolArgs:
    """Validate raw model-supplied arguments against the tool's schema.

    Raises UnknownTool for a name outside TOOLS and InvalidArguments for
    anything the schema rejects. Keys not in the schema are ignored.
    """
    spec = TOOLS_BY_NAME.get(name)
    if spec is None:
        raise UnknownTool(name)
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArguments(name, "arguments must be a JSON object")
    if INVALID_ARGUMENTS_KEY in arguments:
        raise InvalidArguments(name, str(arguments[INVALID_ARGUMENTS_KEY]))

    values: dict[str, str | None] = {}
    for param in spec.parameters:
        value = arguments.get(param.name)
        if value is None or (value == "" and not param.required):
            if param.required:
                raise InvalidArguments(name, f"missing required parameter {param.name!r}")
            values[param.name] = None
            continue
        if not isinstance(value, str):
            raise InvalidArguments(name, f"parameter {param.name!r} must be a string")
        values[param.name] = value

    return _ARGS_BY_TOOL[name](**values)
