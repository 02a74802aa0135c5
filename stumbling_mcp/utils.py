"""
Utility functions, exceptions, and path validation for Stumbling MCP Server.

Contains the error taxonomy shared by every operation and the functions that
confine note paths to the configured root.
"""

from pathlib import Path, PurePosixPath

from .config import NOTE_SUFFIX, TRASH_DIR, settings


# ============== Exceptions ==============

class NoteError(Exception):
    """Base class for errors raised by note operations."""
    pass


class PathEscapesRootError(NoteError):
    """Raised when a path resolves outside the configured root."""
    pass


class NoteNotFoundError(NoteError, FileNotFoundError):
    """Raised when a note or folder does not exist."""
    pass


class NoteExistsError(NoteError, FileExistsError):
    """Raised when a create-only write targets an existing note."""
    pass


class RangeOutOfBoundsError(NoteError):
    """Raised when a line range does not fit the note body."""
    pass


class SectionNotFoundError(NoteError):
    """Raised when no heading matches a section request."""
    pass


class InvalidPatternError(NoteError, ValueError):
    """Raised when a search pattern is empty or not a valid expression."""
    pass


class ContentValidationError(NoteError, ValueError):
    """Raised when content or metadata is rejected before writing."""
    pass


class HeaderParseError(NoteError, ValueError):
    """Raised when a delimited frontmatter block is not valid YAML."""

    def __init__(self, path: str, line: int | None, reason: str):
        self.path = path
        self.line = line
        self.reason = reason
        location = f"{path}:{line}" if line is not None else path
        super().__init__(f"Invalid frontmatter in {location}: {reason}")


# ============== Path Validation ==============

def resolve_note_path(path_str: str, root: Path) -> Path:
    """Validate that a path is safely within the root directory.

    Args:
        path_str: Root-relative path to a note or folder
        root: The configured notes root

    Returns:
        The validated absolute Path (symlinks resolved)

    Raises:
        PathEscapesRootError: If the path is empty, absolute, contains '..',
            or resolves outside the root
    """
    # Reject empty paths
    if not path_str or not path_str.strip():
        raise PathEscapesRootError("Path cannot be empty")

    normalized = path_str.replace("\\", "/")

    # Reject absolute paths
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        raise PathEscapesRootError(f"Absolute paths are not allowed: {path_str}")

    # Reject paths with ".." components (path traversal attempt)
    if ".." in PurePosixPath(normalized).parts:
        raise PathEscapesRootError(f"Path traversal detected: '..' is not allowed in {path_str}")

    # Build the full path and resolve it, following symlinks
    full_path = (root / normalized).resolve()
    root_resolved = root.resolve()

    # Verify the resolved path is within the root
    try:
        full_path.relative_to(root_resolved)
    except ValueError:
        raise PathEscapesRootError(f"Path escapes root directory: {path_str}")

    return full_path


def relative_path_str(path: Path, root: Path) -> str:
    """Return a forward-slash path relative to the resolved root."""
    return path.relative_to(root.resolve()).as_posix()


def is_hidden(rel_path: Path) -> bool:
    """True when any component starts with '.', which covers the trash folder."""
    return any(part.startswith(".") for part in rel_path.parts)


def is_in_trash(rel_path: Path) -> bool:
    """True when a root-relative path lies inside the trash folder."""
    return bool(rel_path.parts) and rel_path.parts[0] == TRASH_DIR


def iter_note_files(root: Path) -> list[Path]:
    """Enumerate note files under root, sorted by path.

    Hidden folders and files (including the trash and temporary files written
    during atomic publish) are skipped, as are symlinks that resolve outside
    the root.
    """
    root_resolved = root.resolve()
    notes: list[Path] = []
    for note_file in root_resolved.rglob(f"*{NOTE_SUFFIX}"):
        rel_path = note_file.relative_to(root_resolved)
        if is_hidden(rel_path):
            continue
        if not note_file.is_file():
            continue
        try:
            note_file.resolve().relative_to(root_resolved)
        except ValueError:
            continue
        notes.append(note_file)
    notes.sort(key=lambda p: p.relative_to(root_resolved).as_posix())
    return notes


def validate_content_size(content: str) -> str:
    """Validate content size.

    Args:
        content: The content to validate

    Returns:
        The validated content

    Raises:
        ContentValidationError: If the content exceeds size limits
    """
    content_bytes = len(content.encode('utf-8'))

    if content_bytes > settings.max_content_size:
        max_mb = settings.max_content_size / (1024 * 1024)
        actual_mb = content_bytes / (1024 * 1024)
        raise ContentValidationError(
            f"Content size ({actual_mb:.2f}MB) exceeds maximum allowed size ({max_mb}MB)"
        )

    return content
