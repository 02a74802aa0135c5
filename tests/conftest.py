"""
Pytest configuration and fixtures for stumbling-mcp tests.
"""

import pytest
from pathlib import Path


TEST_NOTE = """---
title: Test Note
tags: [rust, mcp]
---

# Hello World

This is a test note about Gagagigo.
"""

PLAN_NOTE = """---
title: Plan
# keep this comment
author:
  name: Gagagigo
  level: 4
created: 2024-01-15
---
# Plan

Intro line.

## Tasks

- write parser
- write tests

### Subtasks

- fixtures

## Notes

Closing thoughts.
"""


@pytest.fixture
def temp_vault(tmp_path: Path):
    """Create a temporary notes root with test notes."""
    vault_path = tmp_path / "vault"
    vault_path.mkdir()

    # Note 1: frontmatter in flow style
    (vault_path / "test.md").write_text(TEST_NOTE, encoding="utf-8")

    # Note 2: no frontmatter
    (vault_path / "simple.md").write_text("# Simple Note\n\nNo frontmatter here.\n", encoding="utf-8")

    # Note 3: nested folder
    (vault_path / "daily").mkdir()
    (vault_path / "daily" / "2024-01-01.md").write_text("# Daily Note\n\nGagagigo awakens!\n", encoding="utf-8")

    # Note 4: sections and a nested mapping
    (vault_path / "projects").mkdir()
    (vault_path / "projects" / "plan.md").write_text(PLAN_NOTE, encoding="utf-8")

    # Note 5: invalid frontmatter
    (vault_path / "broken.md").write_text("---\ntitle: [unclosed\n---\n\nBroken header body.\n", encoding="utf-8")

    # Hidden folder that must never be searched or listed
    (vault_path / ".obsidian").mkdir()
    (vault_path / ".obsidian" / "config.md").write_text("# Hidden Gagagigo\n", encoding="utf-8")

    # Non-markdown file
    (vault_path / "attachment.txt").write_text("Gagagigo in a text file\n", encoding="utf-8")

    yield vault_path


@pytest.fixture
def patched_settings(temp_vault, monkeypatch):
    """Point the global settings at the temp vault."""
    from stumbling_mcp.config import settings

    monkeypatch.setattr(settings, "root", temp_vault)
    monkeypatch.setattr(settings, "parse_frontmatter", False)
    return settings


def snapshot(root: Path) -> dict[str, bytes]:
    """Map every file under root to its bytes."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
