"""
Listing and reading functions for Stumbling MCP Server.
"""

from pathlib import Path

import aiofiles
import structlog

from .frontmatter import read_lenient
from .models import NoteContent, NoteEntry
from .utils import NoteNotFoundError, relative_path_str, resolve_note_path

logger = structlog.get_logger(__name__)


def list_notes(root: Path, subpath: str = "") -> list[NoteEntry]:
    """List the files and folders directly under a folder.

    Hidden entries, including the trash folder, are left out. Folders come
    first, then files, each sorted by path.

    Raises:
        PathEscapesRootError: If the subpath leaves the root
        NoteNotFoundError: If the folder does not exist
    """
    folder = root.resolve() if not subpath.strip() else resolve_note_path(subpath, root)
    if not folder.is_dir():
        raise NoteNotFoundError(f"Folder not found: {subpath}")

    entries = [
        NoteEntry(path=relative_path_str(child, root), is_directory=child.is_dir())
        for child in folder.iterdir()
        if not child.name.startswith(".")
    ]
    entries.sort(key=lambda e: (not e.is_directory, e.path))
    return entries


async def read_note(root: Path, note_path: str, separate_metadata: bool = False) -> NoteContent:
    """Read a note as raw text, or as frontmatter metadata plus body.

    When the frontmatter is malformed the raw text is returned with a warning
    instead of an error. A note without frontmatter is returned as raw text.

    Raises:
        PathEscapesRootError: If the path leaves the root
        NoteNotFoundError: If the note does not exist
    """
    target = resolve_note_path(note_path, root)
    if not target.is_file():
        raise NoteNotFoundError(f"Note not found: {note_path}")

    async with aiofiles.open(target, mode="rb") as f:
        raw = (await f.read()).decode("utf-8")

    rel_path = relative_path_str(target, root)
    if not separate_metadata:
        return NoteContent(path=rel_path, content=raw)

    document, header_error = read_lenient(raw, rel_path)
    if header_error is not None:
        logger.warning("frontmatter_parse_failed", path=rel_path, line=header_error.line, reason=header_error.reason)
        return NoteContent(path=rel_path, content=raw, warning=str(header_error))

    if document.metadata is None:
        return NoteContent(path=rel_path, content=raw)

    return NoteContent(path=rel_path, metadata=document.metadata, body=document.body)
