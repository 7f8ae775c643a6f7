"""Gitignore-style ignore rules.

A pattern compiler (``pattern``) turns each ignore-file line into a matcher,
and rule sets (``rules``) decide inclusion by the last matching pattern.
"""

from biome.ignore.pattern import Pattern, parse_line
from biome.ignore.rules import (
    IGNORE_CONFIG_FILE_NAME,
    IGNORE_FILE_NAME,
    governing_match,
    is_excluded,
    last_match,
    load_global_ignore,
    parse_files,
    parse_lines,
)

__all__ = [
    "IGNORE_CONFIG_FILE_NAME",
    "IGNORE_FILE_NAME",
    "Pattern",
    "governing_match",
    "is_excluded",
    "last_match",
    "load_global_ignore",
    "parse_files",
    "parse_line",
    "parse_lines",
]
