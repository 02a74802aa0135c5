"""
Delete functions for Stumbling MCP Server.

A delete either removes a note for good or moves it to <root>/.trash/ under
its original relative path. Trashed notes are never overwritten.
"""

import errno
import os
from datetime import datetime
from pathlib import Path

import aiofiles.os
import structlog

from .config import TRASH_DIR
from .models import DeleteResult
from .utils import NoteNotFoundError, is_in_trash, relative_path_str, resolve_note_path

logger = structlog.get_logger(__name__)

# link() errors meaning the filesystem cannot hard link at all
NO_HARD_LINK_ERRNOS = {errno.EPERM, errno.EXDEV, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EMLINK}


def trash_destination(root: Path, rel_path: Path, now: datetime | None = None) -> Path:
    """Pick a free trash path for a note.

    The first choice mirrors the original path. When it is taken the name
    gets a timestamp (<stem>.<YYYYMMDDTHHMMSS><suffix>), then a counter.
    """
    destination = root.resolve() / TRASH_DIR / rel_path
    if not destination.exists():
        return destination

    stamp = (now or datetime.now()).strftime("%Y%m%dT%H%M%S")
    stem, suffix = destination.stem, destination.suffix
    candidate = destination.with_name(f"{stem}.{stamp}{suffix}")
    counter = 1
    while candidate.exists():
        candidate = destination.with_name(f"{stem}.{stamp}-{counter}{suffix}")
        counter += 1
    return candidate


async def _move_to_trash(root: Path, target: Path, rel_path: Path) -> Path:
    """Move target into the trash without replacing an existing entry.

    A hard link fails if the name was claimed since trash_destination looked,
    in which case the next free name is tried. Filesystems without hard links
    fall back to a plain rename.
    """
    while True:
        destination = trash_destination(root, rel_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.link(target, destination)
        except FileExistsError:
            continue
        except OSError as e:
            if e.errno not in NO_HARD_LINK_ERRNOS:
                raise
            await aiofiles.os.rename(target, destination)
            return destination
        await aiofiles.os.remove(target)
        return destination


async def delete_note(root: Path, note_path: str, permanent: bool = False) -> DeleteResult:
    """Delete a note, moving it to the trash unless permanent.

    A note that is already in the trash is removed permanently.

    Raises:
        PathEscapesRootError: If the path leaves the root
        NoteNotFoundError: If the note does not exist
        OSError: If the filesystem operation fails
    """
    target = resolve_note_path(note_path, root)
    if not target.is_file():
        raise NoteNotFoundError(f"Note not found: {note_path}")

    rel_path = Path(relative_path_str(target, root))

    if permanent or is_in_trash(rel_path):
        await aiofiles.os.remove(target)
        logger.info("note_deleted", path=rel_path.as_posix())
        return DeleteResult(path=rel_path.as_posix(), permanent=True)

    destination = await _move_to_trash(root, target, rel_path)

    trash_rel = relative_path_str(destination, root)
    logger.info("note_trashed", path=rel_path.as_posix(), trash_path=trash_rel)
    return DeleteResult(path=rel_path.as_posix(), permanent=False, trash_path=trash_rel)
