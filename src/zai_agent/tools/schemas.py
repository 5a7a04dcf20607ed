"""JSON schemas advertised to the model for the built-in tools."""

from typing import Any, Dict, List, Optional

BUILTIN_TOOL_DESCRIPTIONS = {
    "Read": "Read the contents of a file at the specified path",
    "Write": "Write content to a file at the specified path",
    "Edit": "Edit a file by replacing old_string with new_string",
    "Bash": "Execute a bash command in the shell",
    "Glob": "Find files matching a glob pattern",
    "Grep": "Search for a pattern in files",
    "List": "List files and directories at the specified path",
}

BUILTIN_TOOL_PARAMETERS: Dict[str, Dict[str, Any]] = {
    "Read": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to the file to read"},
        },
        "required": ["path"],
    },
    "Write": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to the file to write"},
            "content": {"type": "string", "description": "Content to write to the file"},
        },
        "required": ["path", "content"],
    },
    "Edit": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to the file to edit"},
            "old_string": {"type": "string", "description": "String to replace"},
            "new_string": {"type": "string", "description": "Replacement string"},
        },
        "required": ["path", "old_string", "new_string"],
    },
    "Bash": {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Bash command to execute"},
        },
        "required": ["command"],
    },
    "Glob": {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Glob pattern to match files"},
        },
        "required": ["pattern"],
    },
    "Grep": {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Search pattern"},
            "path": {"type": "string", "description": "Path to search in"},
        },
        "required": ["pattern"],
    },
    "List": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Directory path to list"},
        },
        "required": ["path"],
    },
}

EMPTY_PARAMETERS = {"type": "object", "properties": {}}


def function_tool(
    name: str, description: Optional[str], parameters: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Wrap a tool definition in the OpenAI ``function`` tool shape."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description or f"Tool: {name}",
            "parameters": parameters or dict(EMPTY_PARAMETERS),
        },
    }


def builtin_tool_schema(name: str) -> Dict[str, Any]:
    """Schema for a built-in tool, keeping the caller's spelling of the name."""
    canonical = next((n for n in BUILTIN_TOOL_DESCRIPTIONS if n.lower() == name.lower()), name)
    return function_tool(
        name,
        BUILTIN_TOOL_DESCRIPTIONS.get(canonical),
        BUILTIN_TOOL_PARAMETERS.get(canonical),
    )


def builtin_tool_schemas(names: List[str]) -> List[Dict[str, Any]]:
    return [builtin_tool_schema(name) for name in names]
