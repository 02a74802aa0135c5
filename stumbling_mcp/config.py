"""
Configuration module for Stumbling MCP Server.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use STUMBLING_ prefix (e.g., STUMBLING_ROOT).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_root() -> Path:
    """Get default notes root."""
    return Path.home() / "Documents" / "Notes"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - STUMBLING_ROOT: Path to the notes directory
    - STUMBLING_PARSE_FRONTMATTER: Return frontmatter separately when reading notes
    - STUMBLING_SEARCH_WORKERS: Worker pool size for search (defaults to CPU count)
    - STUMBLING_SEARCH_LIMIT: Default maximum number of search results
    - STUMBLING_CONTEXT_LINES: Default number of context lines around matches
    - STUMBLING_MAX_CONTENT_SIZE: Maximum content size in bytes
    - STUMBLING_LOG_LEVEL: Log level name
    """

    root: Path = Field(default_factory=_get_default_root)
    parse_frontmatter: bool = False
    search_workers: int | None = None
    search_limit: int = 20
    context_lines: int = 2
    max_content_size: int = 1 * 1024 * 1024  # 1MB in bytes
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="STUMBLING_")


# Global settings instance
settings = Settings()

# Name of the recoverable-delete folder under the root
TRASH_DIR = ".trash"

# Only these files are notes
NOTE_SUFFIX = ".md"
