"""
Line and section addressing for note bodies.

Lines are split on '\\n' only and keep their terminators, so concatenating the
lines of a body reproduces it exactly. Line numbers are 1-based.
"""

import re
from dataclasses import dataclass

from .utils import RangeOutOfBoundsError, SectionNotFoundError

LINE_PATTERN = re.compile(r"[^\n]*\n|[^\n]+")
HEADING_PATTERN = re.compile(r"^(?P<hashes>#{1,6})[ \t]+(?P<title>.+?)(?:[ \t]+#+)?[ \t]*$")
FENCE_PATTERN = re.compile(r"^[ ]{0,3}(?P<fence>`{3,}|~{3,})")


@dataclass(frozen=True)
class LineRange:
    """Inclusive 1-based line range."""

    start: int
    end: int


@dataclass(frozen=True)
class Heading:
    """An ATX heading found in a body."""

    level: int
    title: str
    line: int


def split_lines(body: str) -> list[str]:
    """Split a body into lines, each keeping its terminator."""
    return LINE_PATTERN.findall(body)


def strip_line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def line_count(body: str) -> int:
    return len(split_lines(body))


def validate_range(body: str, line_range: LineRange) -> list[str]:
    """Check a range against the body and return the body's lines.

    An empty body only accepts the degenerate range [0, 0].

    Raises:
        RangeOutOfBoundsError: If the range is inverted or outside the body
    """
    lines = split_lines(body)
    start, end = line_range.start, line_range.end

    if not lines:
        if (start, end) == (0, 0):
            return lines
        raise RangeOutOfBoundsError(
            f"Lines {start}-{end} are out of bounds: the body is empty (only 0-0 is accepted)"
        )

    if start < 1 or end < start or end > len(lines):
        raise RangeOutOfBoundsError(
            f"Lines {start}-{end} are out of bounds for a body of {len(lines)} lines"
        )
    return lines


def line_span(body: str, line_range: LineRange) -> tuple[int, int]:
    """Return the character offsets covering a line range, terminators included."""
    lines = validate_range(body, line_range)
    if not lines:
        return 0, 0
    offset_start = sum(len(line) for line in lines[: line_range.start - 1])
    offset_end = offset_start + sum(len(line) for line in lines[line_range.start - 1 : line_range.end])
    return offset_start, offset_end


def extract_lines(body: str, line_range: LineRange) -> str:
    """Return the exact text of a line range."""
    offset_start, offset_end = line_span(body, line_range)
    return body[offset_start:offset_end]


def replace_lines(body: str, line_range: LineRange, new_text: str) -> str:
    """Substitute new_text for the lines in range.

    A non-empty replacement without a trailing line terminator receives the
    terminator of the last replaced line, so it never merges with the next
    line. An empty replacement deletes the lines.
    """
    offset_start, offset_end = line_span(body, line_range)
    replaced = body[offset_start:offset_end]

    replacement = new_text
    if replacement and not replacement.endswith("\n"):
        replacement += line_ending(replaced)

    return body[:offset_start] + replacement + body[offset_end:]


# ============== Sections ==============

def _normalize_heading_key(value: str) -> str:
    """Normalize heading text for case-insensitive comparisons."""
    return " ".join(value.strip().split()).lower()


def list_headings(body: str) -> list[Heading]:
    """Return the ATX headings of a body, skipping fenced code blocks."""
    headings: list[Heading] = []
    open_fence: str | None = None

    for number, line in enumerate(split_lines(body), start=1):
        text = strip_line_ending(line)

        fence = FENCE_PATTERN.match(text)
        if fence:
            marker = fence.group("fence")
            if open_fence is None:
                open_fence = marker
            elif marker[0] == open_fence[0] and len(marker) >= len(open_fence):
                open_fence = None
            continue
        if open_fence is not None:
            continue

        match = HEADING_PATTERN.match(text)
        if match:
            headings.append(
                Heading(
                    level=len(match.group("hashes")),
                    title=match.group("title").strip(),
                    line=number,
                )
            )
    return headings


def find_section(body: str, heading: str) -> LineRange:
    """Resolve the line range of the section under a heading.

    The range starts at the heading line and ends on the line before the next
    heading of equal or higher level, or at the end of the body. A heading
    given with leading '#' markers must also match that level.

    Raises:
        SectionNotFoundError: If no heading matches
    """
    wanted = heading.strip()
    wanted_level = None
    marker = re.match(r"^(#{1,6})\s+", wanted)
    if marker:
        wanted_level = len(marker.group(1))
        wanted = wanted[marker.end():]
    wanted_key = _normalize_heading_key(wanted)

    if not wanted_key:
        raise SectionNotFoundError("Heading cannot be empty")

    headings = list_headings(body)
    for index, candidate in enumerate(headings):
        if _normalize_heading_key(candidate.title) != wanted_key:
            continue
        if wanted_level is not None and candidate.level != wanted_level:
            continue

        end = line_count(body)
        for subsequent in headings[index + 1 :]:
            if subsequent.level <= candidate.level:
                end = subsequent.line - 1
                break
        return LineRange(start=candidate.line, end=end)

    raise SectionNotFoundError(f"Heading '{heading}' was not found")
