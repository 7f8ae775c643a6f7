"""Ordered ignore rule sets — last match wins."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from biome.ignore.pattern import Pattern, parse_line

logger = logging.getLogger(__name__)

# Name of the per-tree ignore file, read from the root of a synchronized tree.
IGNORE_FILE_NAME = ".biomeignore"
# Name of the global ignore file inside each configuration directory.
IGNORE_CONFIG_FILE_NAME = "ignore"


def last_match(patterns: Sequence[Pattern], path: str, is_dir: bool = False) -> Pattern | None:
    """Return the last pattern in patterns that matches path, or None."""
    for pat in reversed(patterns):
        if pat.match(path, is_dir):
            return pat
    return None


def governing_match(patterns: Sequence[Pattern], path: str, is_dir: bool = False) -> Pattern | None:
    """Return the rule that decides whether path is synchronized.

    An excluded ancestor directory governs everything below it, since the
    walk never descends into it.
    """
    parts = path.split("/")
    for i in range(1, len(parts)):
        pat = last_match(patterns, "/".join(parts[:i]), True)
        if pat is not None and not pat.negate:
            return pat
    return last_match(patterns, path, is_dir)


def is_excluded(patterns: Sequence[Pattern], path: str, is_dir: bool = False) -> bool:
    """Apply gitignore precedence: the governing rule is the last match.

    A negated governing rule includes the path; no match includes it too.
    """
    pat = last_match(patterns, path, is_dir)
    return pat is not None and not pat.negate


def parse_lines(lines: Iterable[str | bytes]) -> list[Pattern]:
    """Compile lines, dropping blank, comment and malformed ones."""
    patterns = []
    for line in lines:
        pat = parse_line(line)
        if pat.valid:
            patterns.append(pat)
    return patterns


def parse_files(*paths: str | Path) -> list[Pattern]:
    """Concatenate the patterns of every file in paths, in order.

    Missing files are skipped. Other read errors propagate.
    """
    patterns: list[Pattern] = []
    for path in paths:
        try:
            data = Path(path).read_bytes()
        except FileNotFoundError:
            continue
        file_patterns = parse_lines(data.split(b"\n"))
        logger.debug("Loaded %d ignore patterns from %s", len(file_patterns), path)
        patterns.extend(file_patterns)
    return patterns


def load_global_ignore(config_dirs: Sequence[Path], extra: Iterable[str] = ()) -> list[Pattern]:
    """Load the global ignore rules that precede a tree's own ignore file.

    config_dirs is ordered from lowest to highest precedence; patterns from
    extra (typically the ``ignore`` list of the user settings) come last.
    """
    patterns = parse_files(*(d / IGNORE_CONFIG_FILE_NAME for d in config_dirs))
    patterns.extend(parse_lines(extra))
    return patterns
