"""
Note writing functions for Stumbling MCP Server.

Every write builds the full file content in memory and publishes it with a
temporary file in the target's directory followed by os.replace, so readers
see either the old or the new content, never a partial file.
"""

import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
import structlog

from .frontmatter import NoteDocument, serialize_note, split_document
from .lines import LineRange, find_section, line_count, replace_lines
from .models import UpdateResult, WriteMode, WriteResult
from .utils import (
    ContentValidationError,
    NoteExistsError,
    NoteNotFoundError,
    relative_path_str,
    resolve_note_path,
    validate_content_size,
)

logger = structlog.get_logger(__name__)

# mkstemp creates files readable only by the owner; new notes get regular permissions
NEW_FILE_MODE = 0o644


async def atomic_write(path: Path, content: str) -> None:
    """Publish content to path atomically.

    The temporary file is hidden (dot-prefixed) and lives next to the target
    so the final rename never crosses filesystems. On failure the temporary
    file is removed and the target is left as it was.
    """
    try:
        file_mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        file_mode = NEW_FILE_MODE

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    try:
        os.chmod(tmp_name, file_mode)
        async with aiofiles.open(tmp_name, mode="wb") as f:
            await f.write(content.encode("utf-8"))
            await f.flush()
        await aiofiles.os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def coerce_metadata(metadata: Any) -> dict[str, Any] | None:
    """Accept metadata as a mapping or as a JSON-encoded mapping.

    Raises:
        ContentValidationError: If the metadata is not a mapping
    """
    if metadata is None:
        return None
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError as e:
            raise ContentValidationError(f"Metadata string is not valid JSON: {e}") from e
    if not isinstance(metadata, dict):
        raise ContentValidationError(
            f"Metadata must be a mapping of keys to values, got {type(metadata).__name__}"
        )
    for key in metadata:
        if not isinstance(key, str) or not key.strip():
            raise ContentValidationError("Metadata keys must be non-empty strings")
    return metadata


async def write_note(
    root: Path,
    note_path: str,
    body: str,
    metadata: Any = None,
    mode: WriteMode = WriteMode.CREATE_OR_OVERWRITE,
) -> WriteResult:
    """Create or overwrite a note.

    Args:
        root: Notes root
        note_path: Root-relative path of the note
        body: Markdown body
        metadata: Optional frontmatter mapping (or JSON string of one)
        mode: create_or_overwrite, or create_only to refuse existing targets

    Returns:
        WriteResult with the final relative path

    Raises:
        PathEscapesRootError: If the path leaves the root
        NoteExistsError: If mode is create_only and the note exists
        ContentValidationError: If the metadata or content is rejected
        OSError: If the filesystem write fails
    """
    target = resolve_note_path(note_path, root)
    mode = WriteMode(mode)
    header = coerce_metadata(metadata)

    content = serialize_note(NoteDocument(metadata=header, body=body))
    validate_content_size(content)

    if target.is_dir():
        raise ContentValidationError(f"Path is a directory: {note_path}")

    existed = target.exists()
    if existed and mode is WriteMode.CREATE_ONLY:
        raise NoteExistsError(f"Note already exists: {relative_path_str(target, root)}")

    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        await atomic_write(target, content)
    except OSError as e:
        logger.error("note_write_failed", path=str(target), error=str(e))
        raise

    rel_path = relative_path_str(target, root)
    status = "overwritten" if existed else "created"
    logger.info("note_written", path=rel_path, status=status, mode=mode.value)
    return WriteResult(path=rel_path, status=status, size=len(content.encode("utf-8")))


async def update_lines(
    root: Path,
    note_path: str,
    new_text: str,
    line_range: LineRange | None = None,
    heading: str | None = None,
) -> UpdateResult:
    """Replace a line range or a heading's section in a note body.

    The frontmatter block is carried over byte for byte; only the body span is
    replaced. Exactly one of line_range or heading must be given.

    Raises:
        PathEscapesRootError: If the path leaves the root
        NoteNotFoundError: If the note does not exist
        RangeOutOfBoundsError: If the range does not fit the body
        SectionNotFoundError: If the heading is not found
        OSError: If the filesystem write fails
    """
    if (line_range is None) == (heading is None):
        raise ValueError("Provide exactly one of a line range or a heading")

    target = resolve_note_path(note_path, root)
    if not target.is_file():
        raise NoteNotFoundError(f"Note not found: {note_path}")

    async with aiofiles.open(target, mode="rb") as f:
        raw = (await f.read()).decode("utf-8")

    document = split_document(raw)
    if line_range is None:
        line_range = find_section(document.body, heading)

    document.body = replace_lines(document.body, line_range, new_text)
    content = serialize_note(document)
    validate_content_size(content)

    try:
        await atomic_write(target, content)
    except OSError as e:
        logger.error("note_update_failed", path=str(target), error=str(e))
        raise

    rel_path = relative_path_str(target, root)
    new_count = line_count(document.body)
    logger.info(
        "note_lines_updated",
        path=rel_path,
        start=line_range.start,
        end=line_range.end,
        line_count=new_count,
    )
    return UpdateResult(path=rel_path, start=line_range.start, end=line_range.end, line_count=new_count)
