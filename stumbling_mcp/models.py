"""
Pydantic models for Stumbling MCP Server.

Contains option and result models for search, read, write, update, list and delete.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class SearchOptions(BaseModel):
    """Options accepted by a content search."""

    regex: bool = True
    case_insensitive: bool = False
    include_header: bool = False
    max_results: int | None = Field(default=None, ge=0)
    context_lines: int = Field(default=2, ge=0)


class SearchMatch(BaseModel):
    """A single matching line with its surrounding context."""

    path: str
    line_number: int
    line: str
    location: Literal["body", "header"] = "body"
    context_before: list[str] = Field(default_factory=list)
    context_after: list[str] = Field(default_factory=list)


class SearchWarning(BaseModel):
    """A file that could not be searched normally."""

    path: str
    reason: str


class SearchResults(BaseModel):
    """Matches collected from every searched file, plus per-file warnings."""

    matches: list[SearchMatch] = Field(default_factory=list)
    warnings: list[SearchWarning] = Field(default_factory=list)
    files_searched: int = 0
    truncated: bool = False

    @property
    def paths(self) -> list[str]:
        """Distinct matching paths in result order."""
        return list(dict.fromkeys(match.path for match in self.matches))


class MetadataMatch(BaseModel):
    """A note whose frontmatter field matched a pattern."""

    path: str
    value: Any


class MetadataResults(BaseModel):
    """Result of a frontmatter field search."""

    matches: list[MetadataMatch] = Field(default_factory=list)
    warnings: list[SearchWarning] = Field(default_factory=list)


class NoteEntry(BaseModel):
    """A listed file or folder."""

    path: str
    is_directory: bool


class NoteContent(BaseModel):
    """Result of reading a note."""

    path: str
    content: str | None = None
    metadata: dict[str, Any] | None = None
    body: str | None = None
    warning: str | None = None


class WriteMode(str, Enum):
    """How a write treats an existing target."""

    CREATE_OR_OVERWRITE = "create_or_overwrite"
    CREATE_ONLY = "create_only"


class WriteResult(BaseModel):
    """Model for the result of a write operation."""

    path: str
    status: Literal["created", "overwritten"]
    size: int


class UpdateResult(BaseModel):
    """Model for the result of a line-range update."""

    path: str
    start: int
    end: int
    line_count: int


class DeleteResult(BaseModel):
    """Model for the result of a delete."""

    path: str
    permanent: bool
    trash_path: str | None = None
