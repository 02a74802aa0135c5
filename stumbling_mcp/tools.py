"""
MCP Tools module for Stumbling MCP Server.

Contains the MCP tool handlers (list_tools and call_tool).
"""

import json
from typing import Any

import structlog
from mcp.server import Server
from mcp.types import (
    TextContent,
    Tool,
)

from .config import settings
from .lines import LineRange
from .models import SearchOptions, WriteMode
from .notes import list_notes, read_note
from .search import search_metadata, search_notes
from .trash import delete_note
from .utils import NoteError
from .writer import update_lines, write_note

logger = structlog.get_logger(__name__)

# Initialize server
server = Server("stumbling-mcp")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="list_notes",
            description="List the files and folders directly under a folder of the notes root. Hidden folders and the trash are not listed.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Folder relative to the root (e.g., 'daily'). Omit for the root itself.",
                        "default": ""
                    }
                }
            }
        ),
        Tool(
            name="read_note",
            description="Read a markdown note. Returns the raw text, or the frontmatter metadata and body as JSON when separate_metadata is true.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Relative path to the note (e.g., 'daily/2024-01-01.md')"
                    },
                    "separate_metadata": {
                        "type": "boolean",
                        "description": "Return frontmatter and body separately (default: server setting)"
                    }
                },
                "required": ["path"]
            }
        ),
        Tool(
            name="search_notes",
            description="Search the contents of all notes line by line. Returns matching lines with line numbers "
                       "and surrounding context, ordered by path. Line numbers can be passed to update_lines.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search pattern (regular expression unless regex is false)"
                    },
                    "regex": {
                        "type": "boolean",
                        "description": "Treat the query as a regular expression (default: true)",
                        "default": True
                    },
                    "case_insensitive": {
                        "type": "boolean",
                        "description": "Ignore case when matching (default: false)",
                        "default": False
                    },
                    "include_header": {
                        "type": "boolean",
                        "description": "Also search the frontmatter block (default: false)",
                        "default": False
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of matches to return (default: {settings.search_limit})",
                        "default": settings.search_limit
                    },
                    "context_lines": {
                        "type": "integer",
                        "description": f"Lines of context before and after each match (default: {settings.context_lines})",
                        "default": settings.context_lines
                    }
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="search_metadata",
            description="Search notes by a frontmatter field. Supports nested fields with dot notation (e.g., 'author.name'). "
                       "List values match when any element matches.",
            inputSchema={
                "type": "object",
                "properties": {
                    "field": {
                        "type": "string",
                        "description": "Frontmatter field (e.g., 'title', 'tags', 'author.name')"
                    },
                    "pattern": {
                        "type": "string",
                        "description": "Regular expression matched against the field value"
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of results (default: {settings.search_limit})",
                        "default": settings.search_limit
                    }
                },
                "required": ["field", "pattern"]
            }
        ),
        Tool(
            name="write_note",
            description="Create or overwrite a markdown note. Parent folders are created. "
                       "When metadata is given it is written as YAML frontmatter before the content.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Relative path to the note (e.g., 'projects/plan.md')"
                    },
                    "content": {
                        "type": "string",
                        "description": "Body content of the note in Markdown format"
                    },
                    "metadata": {
                        "type": "object",
                        "description": "Optional frontmatter (e.g., {\"title\": \"My Note\", \"tags\": [\"rust\"]})"
                    },
                    "mode": {
                        "type": "string",
                        "description": "create_or_overwrite (default) or create_only to fail if the note exists",
                        "enum": [m.value for m in WriteMode],
                        "default": WriteMode.CREATE_OR_OVERWRITE.value
                    }
                },
                "required": ["path", "content"]
            }
        ),
        Tool(
            name="update_lines",
            description="Replace lines of a note body, leaving the frontmatter and all other lines untouched. "
                       "Address lines with start/end (1-based, inclusive, body line numbers as reported by search_notes) "
                       "or with a heading to replace that heading's whole section.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Relative path to the note"
                    },
                    "new_text": {
                        "type": "string",
                        "description": "Replacement text (empty string deletes the lines)"
                    },
                    "start": {
                        "type": "integer",
                        "description": "First line to replace (1-based)"
                    },
                    "end": {
                        "type": "integer",
                        "description": "Last line to replace (inclusive)"
                    },
                    "heading": {
                        "type": "string",
                        "description": "Heading whose section to replace (e.g., 'Tasks' or '## Tasks')"
                    }
                },
                "required": ["path", "new_text"]
            }
        ),
        Tool(
            name="delete_note",
            description="Delete a markdown note. By default it is moved to the .trash folder under its original path; "
                       "set permanent=true to remove it for good.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Relative path to the note"
                    },
                    "permanent": {
                        "type": "boolean",
                        "description": "Permanently delete instead of moving to .trash (default: false)",
                        "default": False
                    }
                },
                "required": ["path"]
            }
        ),
    ]


async def _dispatch(name: str, arguments: dict[str, Any]) -> str | None:
    """Run a tool and return its text output, or None for an unknown tool."""
    root = settings.root

    if name == "list_notes":
        entries = list_notes(root, arguments.get("path") or "")
        return json.dumps([e.model_dump() for e in entries], indent=2)

    elif name == "read_note":
        separate = arguments.get("separate_metadata")
        if separate is None:
            separate = settings.parse_frontmatter
        note = await read_note(root, arguments.get("path", ""), separate_metadata=separate)

        if note.content is not None:
            if note.warning:
                return f"Warning: {note.warning}\n\n{note.content}"
            return note.content
        return json.dumps({"metadata": note.metadata, "body": note.body}, indent=2, ensure_ascii=False)

    elif name == "search_notes":
        options = SearchOptions(
            regex=arguments.get("regex", True),
            case_insensitive=arguments.get("case_insensitive", False),
            include_header=arguments.get("include_header", False),
            max_results=arguments.get("limit", settings.search_limit),
            context_lines=arguments.get("context_lines", settings.context_lines),
        )
        results = await search_notes(root, arguments.get("query", ""), options)
        return results.model_dump_json(indent=2)

    elif name == "search_metadata":
        results = await search_metadata(
            root,
            arguments.get("field", ""),
            arguments.get("pattern", ""),
            limit=arguments.get("limit", settings.search_limit),
        )
        return results.model_dump_json(indent=2)

    elif name == "write_note":
        result = await write_note(
            root,
            arguments.get("path", ""),
            arguments.get("content", ""),
            metadata=arguments.get("metadata"),
            mode=arguments.get("mode", WriteMode.CREATE_OR_OVERWRITE.value),
        )
        action = "Created" if result.status == "created" else "Overwrote"
        return f"{action} {result.path}"

    elif name == "update_lines":
        start = arguments.get("start")
        end = arguments.get("end")
        heading = arguments.get("heading")
        line_range = None
        if start is not None or end is not None:
            if start is None or end is None:
                raise ValueError("Both start and end are required for a line range")
            line_range = LineRange(start=int(start), end=int(end))

        result = await update_lines(
            root,
            arguments.get("path", ""),
            arguments.get("new_text", ""),
            line_range=line_range,
            heading=heading,
        )
        return f"Updated lines {result.start}-{result.end} of {result.path}; body now has {result.line_count} lines"

    elif name == "delete_note":
        result = await delete_note(root, arguments.get("path", ""), permanent=bool(arguments.get("permanent", False)))
        if result.permanent:
            return f"Permanently deleted {result.path}"
        return f"Moved to trash: {result.trash_path}"

    return None


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        output = await _dispatch(name, arguments or {})
    except (NoteError, OSError, ValueError) as e:
        logger.warning("tool_failed", tool=name, error=str(e), error_type=type(e).__name__)
        return [TextContent(type="text", text=f"Error: {e}")]

    if output is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    return [TextContent(type="text", text=output)]
