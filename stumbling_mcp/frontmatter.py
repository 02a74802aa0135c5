"""
Frontmatter parsing and serialization for Stumbling MCP Server.

A note is an optional YAML header block delimited by '---' lines followed by a
Markdown body. Parsing keeps the block text verbatim so that an untouched
header is written back byte for byte.
"""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Union

import yaml

from .utils import HeaderParseError

HEADER_DELIMITER = "---"

# Values a header may hold once normalized from YAML
HeaderValue = Union[str, int, float, bool, None, list["HeaderValue"], dict[str, "HeaderValue"]]


@dataclass(frozen=True)
class HeaderBlock:
    """Verbatim text of a delimited header block."""

    opening: str
    text: str
    closing: str

    def render(self) -> str:
        return self.opening + self.text + self.closing

    @property
    def line_count(self) -> int:
        """Number of file lines taken by the block, delimiters included."""
        return 2 + self.text.count("\n")


@dataclass
class NoteDocument:
    """A note split into header metadata and body."""

    metadata: dict[str, HeaderValue] | None
    body: str
    block: HeaderBlock | None = None
    _parsed_metadata: dict[str, HeaderValue] | None = field(default=None, repr=False)

    @property
    def has_header(self) -> bool:
        return self.metadata is not None


def split_note(raw: str) -> tuple[HeaderBlock | None, str]:
    """Split raw note text into its header block and body.

    The header is recognized only when the first line is exactly '---' and a
    later line is exactly '---'. Everything after the closing delimiter line
    is returned as the body, unchanged. Never raises.
    """
    first_end = raw.find("\n")
    if first_end == -1 or raw[:first_end].rstrip("\r") != HEADER_DELIMITER:
        return None, raw

    opening = raw[: first_end + 1]
    position = first_end + 1
    while position < len(raw):
        line_end = raw.find("\n", position)
        next_position = len(raw) if line_end == -1 else line_end + 1
        line = raw[position:next_position]
        if line.rstrip("\r\n") == HEADER_DELIMITER:
            block = HeaderBlock(
                opening=opening,
                text=raw[first_end + 1 : position],
                closing=line,
            )
            return block, raw[next_position:]
        position = next_position

    # Opening delimiter without a closing one: the whole file is body
    return None, raw


class _RecursiveValueError(ValueError):
    pass


def _normalize_value(value: Any, parents: frozenset[int] = frozenset()) -> HeaderValue:
    """Normalize a YAML value; parents holds the ids of the enclosing containers."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        # A recursive alias (a: &x [*x]) loads as a container holding itself
        if id(value) in parents:
            raise _RecursiveValueError("recursive alias")
        parents = parents | {id(value)}
        if isinstance(value, dict):
            return {str(key): _normalize_value(item, parents) for key, item in value.items()}
        return [_normalize_value(item, parents) for item in value]
    return str(value)


def _same_value(left: Any, right: Any) -> bool:
    """Type-strict equality, so 1, 1.0 and True count as different values."""
    if type(left) is not type(right):
        return False
    if isinstance(left, dict):
        return list(left) == list(right) and all(_same_value(left[k], right[k]) for k in left)
    if isinstance(left, list):
        return len(left) == len(right) and all(map(_same_value, left, right))
    return left == right


def parse_header(block: HeaderBlock, path: str = "") -> dict[str, HeaderValue]:
    """Parse a header block's YAML into a normalized mapping.

    Raises:
        HeaderParseError: If the YAML is invalid or is not a mapping
    """
    try:
        loaded = yaml.safe_load(block.text)
    except yaml.YAMLError as exc:
        line = None
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            # +1 for the opening delimiter line, +1 for 1-based numbering
            line = mark.line + 2
        reason = getattr(exc, "problem", None) or str(exc)
        raise HeaderParseError(path, line, reason) from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise HeaderParseError(path, 2, f"expected a mapping, got {type(loaded).__name__}")
    try:
        normalized = _normalize_value(loaded)
    except _RecursiveValueError as exc:
        raise HeaderParseError(path, None, "recursive alias in frontmatter") from exc
    return normalized


def parse_note(raw: str, path: str = "") -> NoteDocument:
    """Parse raw note text into a NoteDocument.

    Raises:
        HeaderParseError: If a delimited header block is not valid YAML
    """
    block, body = split_note(raw)
    if block is None:
        return NoteDocument(metadata=None, body=body)

    metadata = parse_header(block, path)
    return NoteDocument(
        metadata=metadata,
        body=body,
        block=block,
        _parsed_metadata=copy.deepcopy(metadata),
    )


def split_document(raw: str) -> NoteDocument:
    """Split raw text without parsing the header.

    The header block is carried as-is, so serialize_note writes it back byte
    for byte even when its YAML is invalid.
    """
    block, body = split_note(raw)
    return NoteDocument(metadata=None, body=body, block=block)


def read_lenient(raw: str, path: str = "") -> tuple[NoteDocument, HeaderParseError | None]:
    """Parse for reading: a malformed header degrades to plain body text."""
    try:
        return parse_note(raw, path), None
    except HeaderParseError as exc:
        return NoteDocument(metadata=None, body=raw), exc


def render_header(metadata: dict[str, Any]) -> str:
    """Render metadata as a canonical header block."""
    if not metadata:
        return f"{HEADER_DELIMITER}\n{HEADER_DELIMITER}\n"
    yaml_content = yaml.safe_dump(
        metadata, allow_unicode=True, default_flow_style=False, sort_keys=False
    )
    return f"{HEADER_DELIMITER}\n{yaml_content}{HEADER_DELIMITER}\n"


def serialize_note(document: NoteDocument) -> str:
    """Compose a NoteDocument back into file text.

    A header that is unchanged since parsing (or was never parsed) is emitted
    verbatim; a new or modified header is emitted in canonical form (key
    order kept, formatting and comments normalized). Clearing the metadata of
    a parsed document drops its header.
    """
    if document.block is not None and _same_value(document.metadata, document._parsed_metadata):
        return document.block.render() + document.body
    if document.metadata is None:
        return document.body
    return render_header(document.metadata) + document.body
