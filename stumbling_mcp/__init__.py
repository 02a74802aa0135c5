# Stumbling MCP Server
#
# Modular package structure:
# - config.py: Settings loaded from STUMBLING_* environment variables
# - logging.py: structlog configuration
# - utils.py: Exceptions and path validation
# - models.py: Pydantic option and result models
# - frontmatter.py: Frontmatter splitting, parsing and serialization
# - lines.py: Line and section addressing
# - search.py: Parallel content and metadata search
# - writer.py: Atomic writes and line-range updates
# - trash.py: Move-to-trash and permanent delete
# - notes.py: Listing and reading
# - tools.py: MCP tool handlers and server instance
# - main.py: Entry point and server initialization

__version__ = "0.1.0"
