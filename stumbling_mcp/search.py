"""
Search functions for Stumbling MCP Server.

Every search enumerates the notes fresh from disk. Files are read with aiofiles
and scanned in a thread pool; each worker returns its own results and the
coordinator merges and orders them by path so truncation is reproducible.
"""

import asyncio
import os
import re
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any, Callable

import aiofiles
import structlog

from .config import settings
from .frontmatter import parse_header, parse_note, split_note
from .lines import split_lines, strip_line_ending
from .models import (
    MetadataMatch,
    MetadataResults,
    SearchMatch,
    SearchOptions,
    SearchResults,
    SearchWarning,
)
from .utils import HeaderParseError, InvalidPatternError, iter_note_files

logger = structlog.get_logger(__name__)

# A scanner takes (relative path, raw bytes) and returns (results, warnings)
Scanner = Callable[[str, bytes], tuple[list[Any], list[SearchWarning]]]


def compile_pattern(pattern: str, regex: bool = True, case_insensitive: bool = False) -> re.Pattern[str]:
    """Compile a search pattern.

    Raises:
        InvalidPatternError: If the pattern is empty or not a valid regular expression
    """
    if not pattern:
        raise InvalidPatternError("Search pattern cannot be empty")

    flags = re.IGNORECASE if case_insensitive else 0
    source = pattern if regex else re.escape(pattern)
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(f"Invalid regex pattern: {pattern} ({e})") from e


def _worker_count(workers: int | None) -> int:
    return max(1, workers or settings.search_workers or os.cpu_count() or 1)


def _decode(rel_path: str, data: bytes) -> tuple[str | None, SearchWarning | None]:
    try:
        return data.decode("utf-8"), None
    except UnicodeDecodeError as e:
        return None, SearchWarning(path=rel_path, reason=f"not valid UTF-8: {e.reason} at byte {e.start}")


async def _fan_out(root: Path, scanner: Scanner, workers: int | None) -> tuple[list[Any], list[SearchWarning], int]:
    """Run scanner over every note under root using a bounded worker pool."""
    root_resolved = root.resolve()
    note_files = iter_note_files(root)
    pool_size = _worker_count(workers)
    semaphore = asyncio.Semaphore(pool_size)
    loop = asyncio.get_running_loop()

    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="search") as pool:

        async def scan_file(note_file: Path) -> tuple[list[Any], list[SearchWarning]]:
            rel_path = note_file.relative_to(root_resolved).as_posix()
            async with semaphore:
                try:
                    async with aiofiles.open(note_file, mode="rb") as f:
                        data = await f.read()
                except OSError as e:
                    return [], [SearchWarning(path=rel_path, reason=f"unreadable: {e.strerror or e}")]
                try:
                    return await loop.run_in_executor(pool, scanner, rel_path, data)
                except Exception as e:
                    return [], [SearchWarning(path=rel_path, reason=f"scan failed: {type(e).__name__}: {e}")]

        outcomes = await asyncio.gather(*(scan_file(note_file) for note_file in note_files))

    results: list[Any] = []
    warnings: list[SearchWarning] = []
    for file_results, file_warnings in outcomes:
        results.extend(file_results)
        warnings.extend(file_warnings)

    for warning in warnings:
        logger.warning("search_file_skipped", path=warning.path, reason=warning.reason)

    warnings.sort(key=lambda w: w.path)
    return results, warnings, len(note_files)


# ============== Content Search ==============

def _match_lines(
    rel_path: str,
    lines: list[str],
    regex: re.Pattern[str],
    context_lines: int,
    location: str,
) -> list[SearchMatch]:
    texts = [strip_line_ending(line) for line in lines]
    matches: list[SearchMatch] = []
    for index, text in enumerate(texts):
        if not regex.search(text):
            continue
        matches.append(SearchMatch(
            path=rel_path,
            line_number=index + 1,
            line=text,
            location=location,
            context_before=texts[max(0, index - context_lines):index],
            context_after=texts[index + 1:index + 1 + context_lines],
        ))
    return matches


def _scan_content(
    rel_path: str,
    data: bytes,
    regex: re.Pattern[str],
    options: SearchOptions,
) -> tuple[list[SearchMatch], list[SearchWarning]]:
    """Scan one note; runs inside a pool worker."""
    text, warning = _decode(rel_path, data)
    if text is None:
        return [], [warning]

    # Body line numbers are the ones update_lines addresses, even when the
    # header YAML does not parse
    warnings: list[SearchWarning] = []
    block, body = split_note(text)
    if block is not None:
        try:
            parse_header(block, rel_path)
        except HeaderParseError as e:
            warnings.append(SearchWarning(
                path=rel_path,
                reason=f"{e}; header searched as plain text",
            ))

    matches: list[SearchMatch] = []
    if options.include_header and block is not None:
        matches.extend(_match_lines(
            rel_path, split_lines(block.text), regex, options.context_lines, "header"
        ))
    matches.extend(_match_lines(
        rel_path, split_lines(body), regex, options.context_lines, "body"
    ))
    return matches, warnings


async def search_notes(
    root: Path,
    pattern: str,
    options: SearchOptions | None = None,
    workers: int | None = None,
) -> SearchResults:
    """Search note contents line by line.

    Args:
        root: Notes root
        pattern: Regular expression, or literal text when options.regex is False
        options: Search options (defaults from settings)
        workers: Worker pool size (defaults to settings, then CPU count)

    Returns:
        SearchResults ordered by path, then header before body, then line

    Raises:
        InvalidPatternError: If the pattern is empty or malformed
    """
    if options is None:
        options = SearchOptions(context_lines=settings.context_lines)
    regex = compile_pattern(pattern, options.regex, options.case_insensitive)

    scanner = partial(_scan_content, regex=regex, options=options)
    matches, warnings, files_searched = await _fan_out(root, scanner, workers)

    matches.sort(key=lambda m: (m.path, m.location != "header", m.line_number))
    truncated = False
    if options.max_results is not None and len(matches) > options.max_results:
        matches = matches[:options.max_results]
        truncated = True

    logger.debug(
        "search_completed",
        pattern=pattern,
        files=files_searched,
        matches=len(matches),
        warnings=len(warnings),
        truncated=truncated,
    )
    return SearchResults(
        matches=matches,
        warnings=warnings,
        files_searched=files_searched,
        truncated=truncated,
    )


# ============== Metadata Search ==============

def get_nested_field(metadata: dict[str, Any], field: str) -> Any:
    """Get a value using dot notation (e.g., "author.name"). Returns None if absent."""
    current: Any = metadata
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def value_matches_pattern(value: Any, regex: re.Pattern[str]) -> bool:
    """Check if a header value matches a pattern."""
    if isinstance(value, bool):
        return bool(regex.search(str(value).lower()))
    if isinstance(value, (str, int, float)):
        return bool(regex.search(str(value)))
    if isinstance(value, list):
        return any(value_matches_pattern(item, regex) for item in value)
    return False


def _scan_metadata(
    rel_path: str,
    data: bytes,
    field: str,
    regex: re.Pattern[str],
) -> tuple[list[MetadataMatch], list[SearchWarning]]:
    text, warning = _decode(rel_path, data)
    if text is None:
        return [], [warning]

    try:
        document = parse_note(text, rel_path)
    except HeaderParseError as e:
        return [], [SearchWarning(path=rel_path, reason=str(e))]

    if document.metadata is None:
        return [], []

    value = get_nested_field(document.metadata, field)
    if value is None or not value_matches_pattern(value, regex):
        return [], []
    return [MetadataMatch(path=rel_path, value=value)], []


async def search_metadata(
    root: Path,
    field: str,
    pattern: str,
    limit: int | None = None,
    workers: int | None = None,
) -> MetadataResults:
    """Search notes by a frontmatter field.

    Args:
        root: Notes root
        field: Field name, nested fields with dot notation (e.g., "author.name")
        pattern: Regular expression matched against the field value
        limit: Maximum number of matches (None for all)
        workers: Worker pool size

    Raises:
        InvalidPatternError: If the pattern or field is empty, or the pattern is malformed
    """
    if not field or not field.strip():
        raise InvalidPatternError("Metadata field cannot be empty")
    regex = compile_pattern(pattern)

    scanner = partial(_scan_metadata, field=field.strip(), regex=regex)
    matches, warnings, files_searched = await _fan_out(root, scanner, workers)

    matches.sort(key=lambda m: m.path)
    if limit is not None:
        matches = matches[:limit]

    logger.debug("metadata_search_completed", field=field, files=files_searched, matches=len(matches))
    return MetadataResults(matches=matches, warnings=warnings)
