"""
Tests for content and metadata search.
"""

import pytest
from pathlib import Path


def _make_notes(root: Path, count: int) -> None:
    """Write count notes, each with one matching line."""
    for i in range(count):
        folder = root / f"bulk{i % 5}"
        folder.mkdir(exist_ok=True)
        (folder / f"note{i:03d}.md").write_text(f"# Note {i}\nneedle {i}\nhay\n", encoding="utf-8")


# ============== Tests for compile_pattern() ==============

class TestCompilePattern:
    """Tests for pattern compilation."""

    def test_regex(self):
        from stumbling_mcp.search import compile_pattern

        assert compile_pattern(r"Gaga\w+").search("Gagagigo")

    def test_literal(self):
        """Test that regex=False matches metacharacters literally."""
        from stumbling_mcp.search import compile_pattern

        pattern = compile_pattern("a.b", regex=False)

        assert pattern.search("a.b")
        assert not pattern.search("axb")

    def test_case_insensitive(self):
        from stumbling_mcp.search import compile_pattern

        assert compile_pattern("gagagigo", case_insensitive=True).search("Gagagigo")
        assert not compile_pattern("gagagigo").search("Gagagigo")

    def test_invalid_pattern(self):
        from stumbling_mcp.search import compile_pattern
        from stumbling_mcp.utils import InvalidPatternError

        with pytest.raises(InvalidPatternError):
            compile_pattern("[unclosed")

    def test_empty_pattern(self):
        from stumbling_mcp.search import compile_pattern
        from stumbling_mcp.utils import InvalidPatternError

        with pytest.raises(InvalidPatternError):
            compile_pattern("")


# ============== Tests for search_notes() ==============

class TestSearchNotes:
    """Tests for the search_notes function."""

    async def test_search_single_term(self, temp_vault):
        """Test searching finds body matches ordered by path."""
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Gagagigo")

        assert [(m.path, m.line_number) for m in results.matches] == [
            ("daily/2024-01-01.md", 3),
            ("test.md", 4),
        ]
        assert results.paths == ["daily/2024-01-01.md", "test.md"]
        assert results.files_searched == 5
        assert not results.truncated

    async def test_line_numbers_are_body_lines(self, temp_vault):
        """Test that match line numbers count from the start of the body."""
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Hello World")

        assert len(results.matches) == 1
        match = results.matches[0]
        assert match.line_number == 2
        assert match.line == "# Hello World"
        assert match.location == "body"

    async def test_search_context(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "about Gagagigo", SearchOptions(context_lines=2))

        match = results.matches[0]
        assert match.context_before == ["# Hello World", ""]
        assert match.context_after == []

    async def test_search_no_context(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "about Gagagigo", SearchOptions(context_lines=0))

        assert results.matches[0].context_before == []

    async def test_header_excluded_by_default(self, temp_vault):
        """Test that frontmatter is not searched unless asked."""
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "keep this comment")

        assert results.matches == []

    async def test_include_header(self, temp_vault):
        """Test that header matches come before body matches of the same file."""
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Gagagigo", SearchOptions(include_header=True))

        assert [(m.path, m.location, m.line_number) for m in results.matches] == [
            ("daily/2024-01-01.md", "body", 3),
            ("projects/plan.md", "header", 4),
            ("test.md", "body", 4),
        ]

    async def test_include_header_ordering_within_file(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Plan", SearchOptions(include_header=True))

        assert [(m.location, m.line_number) for m in results.matches] == [
            ("header", 1),
            ("body", 1),
        ]

    async def test_case_insensitive(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        assert (await search_notes(temp_vault, "gagagigo")).matches == []

        results = await search_notes(temp_vault, "gagagigo", SearchOptions(case_insensitive=True))
        assert len(results.matches) == 2

    async def test_literal_mode(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "[unclosed", SearchOptions(regex=False, include_header=True))

        assert [(m.path, m.location, m.line_number) for m in results.matches] == [("broken.md", "header", 1)]

    async def test_invalid_pattern(self, temp_vault):
        from stumbling_mcp.search import search_notes
        from stumbling_mcp.utils import InvalidPatternError

        with pytest.raises(InvalidPatternError):
            await search_notes(temp_vault, "[unclosed")

    async def test_broken_header_is_searched_as_text(self, temp_vault):
        """Test that a note with bad frontmatter still yields matches and a warning."""
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Broken header body")

        assert [(m.path, m.location, m.line_number) for m in results.matches] == [("broken.md", "body", 2)]
        assert [w.path for w in results.warnings] == ["broken.md"]
        assert "header searched as plain text" in results.warnings[0].reason

    async def test_broken_header_excluded_by_default(self, temp_vault):
        """Test that the lines of an unparseable header stay out of body matches."""
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "unclosed")

        assert results.matches == []

    async def test_recursive_alias_is_warning(self, tmp_path):
        """Test that a self-referencing header does not abort the search."""
        from stumbling_mcp.search import search_notes

        (tmp_path / "good.md").write_text("Gagagigo\n", encoding="utf-8")
        (tmp_path / "loop.md").write_text("---\na: &x [*x]\n---\nGagagigo\n", encoding="utf-8")

        results = await search_notes(tmp_path, "Gagagigo")

        assert [(m.path, m.line_number) for m in results.matches] == [("good.md", 1), ("loop.md", 1)]
        assert [w.path for w in results.warnings] == ["loop.md"]
        assert "recursive alias" in results.warnings[0].reason

    async def test_scanner_failure_is_warning(self, temp_vault, monkeypatch):
        """Test that an unexpected error while scanning one file only skips that file."""
        from stumbling_mcp import search

        real_scan = search._scan_content

        def flaky_scan(rel_path, data, regex, options):
            if rel_path == "test.md":
                raise RuntimeError("boom")
            return real_scan(rel_path, data, regex, options)

        monkeypatch.setattr(search, "_scan_content", flaky_scan)

        results = await search.search_notes(temp_vault, "Gagagigo")

        assert results.paths == ["daily/2024-01-01.md"]
        failed = [w for w in results.warnings if w.path == "test.md"]
        assert len(failed) == 1
        assert "RuntimeError: boom" in failed[0].reason

    async def test_hidden_and_trash_skipped(self, temp_vault):
        """Test that hidden folders, the trash, and non-markdown files are skipped."""
        from stumbling_mcp.search import search_notes

        (temp_vault / ".trash").mkdir()
        (temp_vault / ".trash" / "old.md").write_text("Gagagigo in the trash\n", encoding="utf-8")

        results = await search_notes(temp_vault, "Gagagigo")

        assert not any(p.startswith(".") for p in results.paths)
        assert "attachment.txt" not in results.paths

    async def test_invalid_utf8_is_warning(self, temp_vault):
        """Test that an undecodable file is reported and the rest still searched."""
        from stumbling_mcp.search import search_notes

        (temp_vault / "bad.md").write_bytes(b"\xff\xfe Gagagigo\n")

        results = await search_notes(temp_vault, "Gagagigo")

        assert len(results.matches) == 2
        bad = [w for w in results.warnings if w.path == "bad.md"]
        assert len(bad) == 1
        assert "UTF-8" in bad[0].reason

    async def test_max_results_truncates_in_path_order(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Gagagigo", SearchOptions(max_results=1))

        assert [m.path for m in results.matches] == ["daily/2024-01-01.md"]
        assert results.truncated

    async def test_max_results_not_reached(self, temp_vault):
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Gagagigo", SearchOptions(max_results=10))

        assert len(results.matches) == 2
        assert not results.truncated

    @pytest.mark.parametrize("workers", [1, 4, 16])
    async def test_complete_for_any_worker_count(self, temp_vault, workers):
        """Test that every note is searched exactly once regardless of pool size."""
        from stumbling_mcp.search import search_notes

        _make_notes(temp_vault, 60)

        results = await search_notes(temp_vault, r"^needle \d+$", workers=workers)

        assert len(results.matches) == 60
        assert len(set(results.paths)) == 60
        assert results.paths == sorted(results.paths)

    async def test_truncation_is_deterministic(self, temp_vault):
        """Test that a limited search returns the same prefix every time."""
        from stumbling_mcp.models import SearchOptions
        from stumbling_mcp.search import search_notes

        _make_notes(temp_vault, 40)
        options = SearchOptions(max_results=7)

        first = await search_notes(temp_vault, "needle", options, workers=8)
        second = await search_notes(temp_vault, "needle", options, workers=2)

        assert first.paths == second.paths
        assert len(first.matches) == 7

    async def test_results_are_reiterable(self, temp_vault):
        from stumbling_mcp.search import search_notes

        results = await search_notes(temp_vault, "Gagagigo")

        assert list(results.matches) == list(results.matches)

    async def test_empty_root(self, tmp_path):
        from stumbling_mcp.search import search_notes

        results = await search_notes(tmp_path, "anything")

        assert results.matches == []
        assert results.files_searched == 0


# ============== Tests for search_metadata() ==============

class TestSearchMetadata:
    """Tests for the search_metadata function."""

    async def test_simple_field(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "title", "^Plan$")

        assert [(m.path, m.value) for m in results.matches] == [("projects/plan.md", "Plan")]

    async def test_nested_field(self, temp_vault):
        """Test dot notation for nested fields."""
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "author.name", "Gaga")

        assert [(m.path, m.value) for m in results.matches] == [("projects/plan.md", "Gagagigo")]

    async def test_list_field(self, temp_vault):
        """Test that a list matches when any element matches."""
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "tags", "^rust$")

        assert [(m.path, m.value) for m in results.matches] == [("test.md", ["rust", "mcp"])]

    async def test_date_field(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "created", "^2024-01")

        assert [m.path for m in results.matches] == ["projects/plan.md"]

    async def test_number_field(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "author.level", "^4$")

        assert [m.path for m in results.matches] == ["projects/plan.md"]

    async def test_missing_field(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "status", ".*")

        assert results.matches == []

    async def test_broken_header_warning(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "title", ".*")

        assert [w.path for w in results.warnings] == ["broken.md"]
        assert [m.path for m in results.matches] == ["projects/plan.md", "test.md"]

    async def test_limit(self, temp_vault):
        from stumbling_mcp.search import search_metadata

        results = await search_metadata(temp_vault, "title", ".*", limit=1)

        assert [m.path for m in results.matches] == ["projects/plan.md"]

    async def test_empty_field(self, temp_vault):
        from stumbling_mcp.search import search_metadata
        from stumbling_mcp.utils import InvalidPatternError

        with pytest.raises(InvalidPatternError):
            await search_metadata(temp_vault, " ", ".*")

    def test_get_nested_field(self):
        from stumbling_mcp.search import get_nested_field

        metadata = {"a": {"b": {"c": 1}}, "x": 2}

        assert get_nested_field(metadata, "a.b.c") == 1
        assert get_nested_field(metadata, "x") == 2
        assert get_nested_field(metadata, "x.y") is None
        assert get_nested_field(metadata, "missing") is None

    def test_bool_values_match_lowercase(self):
        import re
        from stumbling_mcp.search import value_matches_pattern

        assert value_matches_pattern(True, re.compile("^true$"))
        assert not value_matches_pattern(None, re.compile(".*"))
