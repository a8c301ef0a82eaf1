"""Shared utilities for the homestead budget tools."""

# Pattern definitions
from utils.patterns import (
    WHITESPACE,
    REMOTE_SOURCE,
    SECTION_FILE_STEM,
    UNSAFE_FILENAME_CHARS,
)

# Value coercion
from utils.strings import (
    coerce_cost,
    coerce_quantity,
    is_display_cost,
    normalize_whitespace,
    text_or_none,
)

# Output formatting
from utils.formatting import (
    format_currency,
    format_percent,
    format_number,
    is_high_cost,
    TableFormatter,
)

# Caching
from utils.cache import TTLCache

# Configuration
from utils.config import (
    Config,
    BudgetConfig,
    ProjectConfig,
    AppConfig,
)

# HTTP utilities
from utils.http import (
    RetryStrategy,
    SessionManager,
    fetch_json,
)

__all__ = [
    # Patterns
    "WHITESPACE",
    "REMOTE_SOURCE",
    "SECTION_FILE_STEM",
    "UNSAFE_FILENAME_CHARS",
    # Strings
    "coerce_cost",
    "coerce_quantity",
    "is_display_cost",
    "normalize_whitespace",
    "text_or_none",
    # Formatting
    "format_currency",
    "format_percent",
    "format_number",
    "is_high_cost",
    "TableFormatter",
    # Cache
    "TTLCache",
    # Config
    "Config",
    "BudgetConfig",
    "ProjectConfig",
    "AppConfig",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    "fetch_json",
]
