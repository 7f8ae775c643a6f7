"""Compile gitignore-style lines into path matchers.

See https://git-scm.com/docs/gitignore#_pattern_format for the syntax. Each
line is lexed into literal runs, wildcards, character classes and ``**``
segment markers, then translated into a regular expression over
slash-separated relative paths. Lines that cannot be compiled produce an inert
pattern that matches nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

LITERAL = "literal"
STAR = "star"
DOUBLE_STAR = "double_star"
QUESTION_MARK = "question_mark"
CHARACTER_CLASS = "character_class"

# Leading "**/" that spans any number of directories.
LEADING_DOUBLE_STAR = "**/"
# Trailing "**" that matches everything inside a directory.
TRAILING_DOUBLE_STAR = "**"

_CLASS_SPECIALS = set("\\]^[-&~|")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str


@dataclass(frozen=True)
class Pattern:
    """A compiled ignore pattern. The default instance is inert.

    Patterns are immutable and safe to share between threads.
    """

    regex: re.Pattern | None = None
    line: str = ""
    negate: bool = False
    directory_only: bool = False

    @property
    def valid(self) -> bool:
        """False for blank, comment and malformed lines."""
        return self.regex is not None

    def match(self, path: str, is_dir: bool = False) -> bool:
        """Report whether a slash-separated relative path matches the pattern.

        Directory-only patterns never match non-directories, and paths that are
        not clean relative paths never match.
        """
        return (
            self.regex is not None
            and (is_dir or not self.directory_only)
            and is_valid_path(path)
            and self.regex.search(path) is not None
        )

    def __str__(self) -> str:
        return self.line


def is_valid_path(path: str) -> bool:
    """Report whether path is a non-empty, slash-separated relative path with no
    empty, ``.`` or ``..`` elements."""
    if not path:
        return False
    return all(elem not in ("", ".", "..") for elem in path.split("/"))


def parse_line(line: str | bytes) -> Pattern:
    """Compile a single line of an ignore file."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            return Pattern()
    elif not _is_valid_text(line):
        return Pattern()

    if line.startswith("#"):
        return Pattern()
    line = _trim_right(line)
    if not line:
        return Pattern()
    original = line

    if line.startswith("\\#"):
        line = line[1:]
    negate = False
    if line.startswith("!"):
        negate = True
        line = line[1:]
    elif line.startswith("\\!"):
        line = line[1:]
    rooted = line.startswith("/")
    if rooted:
        line = line[1:]
    directory_only = line.endswith("/")
    if directory_only:
        line = line[:-1]

    tokens = lex_pattern(line)
    if not tokens:
        return Pattern()

    if tokens[0].kind == DOUBLE_STAR and tokens[0].text == LEADING_DOUBLE_STAR:
        rooted = False
        tokens = tokens[1:]
    elif not rooted:
        # A separator in the middle of the pattern anchors it to the root.
        rooted = any(tok.kind == LITERAL and "/" in tok.text for tok in tokens)
    is_prefix = bool(tokens) and tokens[-1].kind == DOUBLE_STAR
    if is_prefix:
        tokens = tokens[:-1]

    parts = ["^" if rooted else "(?:^|.*/)"]
    for tok in tokens:
        if tok.kind == LITERAL:
            parts.append(re.escape(tok.text))
        elif tok.kind == STAR:
            parts.append("[^/]*")
        elif tok.kind == QUESTION_MARK:
            parts.append("[^/]")
        elif tok.kind == CHARACTER_CLASS:
            converted = convert_character_class(tok.text)
            if converted is None:
                return Pattern()
            parts.append(converted)
        elif tok.kind == DOUBLE_STAR:
            parts.append("(?:|.+/)")
        else:
            raise AssertionError(f"unhandled token kind {tok.kind!r}")
    if not is_prefix:
        parts.append(r"\Z")

    return Pattern(
        regex=re.compile("".join(parts)),
        line=original,
        negate=negate,
        directory_only=directory_only,
    )


def convert_character_class(cc: str) -> str | None:
    """Translate a glob character class such as ``[!a-z]`` into a regex class.

    The result never matches ``/``. Returns None for malformed classes
    (descending ranges or a range with no start).
    """
    body = cc[1:-1]
    n = len(body)
    i = 0
    negated = body.startswith("!")
    if negated:
        i = 1

    ranges: list[tuple[str, str]] = []
    prev: str | None = None
    if i < n and body[i] == "-":
        # Leading hyphen is literal.
        ranges.append(("-", "-"))
        prev = "-"
        i += 1
    while i < n:
        c = body[i]
        i += 1
        if c != "-":
            ranges.append((c, c))
            prev = c
            continue
        if i >= n:
            # Trailing hyphen is literal.
            ranges.append(("-", "-"))
            break
        end = body[i]
        i += 1
        if prev is None or prev > end:
            return None
        ranges[-1] = (prev, end)
        prev = None

    out = ["[^" if negated else "["]
    for lo, hi in ranges:
        if lo <= "/" <= hi:
            # Split the range around the separator.
            if lo < "/":
                out.append(_class_range(lo, "."))
            if hi > "/":
                out.append(_class_range("0", hi))
        else:
            out.append(_class_range(lo, hi))
    if negated:
        out.append("/")
    out.append("]")
    return "".join(out)


def _class_range(lo: str, hi: str) -> str:
    if lo == hi:
        return _class_escape(lo)
    return f"{_class_escape(lo)}-{_class_escape(hi)}"


def _class_escape(c: str) -> str:
    return "\\" + c if c in _CLASS_SPECIALS else c


def lex_pattern(pat: str) -> list[Token] | None:
    """Split a pattern (with anchors already stripped) into tokens.

    Returns None if the pattern contains an unterminated character class.
    """
    tokens: list[Token] = []
    buf: list[str] = []

    def flush() -> None:
        if buf:
            tokens.append(Token(LITERAL, "".join(buf)))
            buf.clear()

    n = len(pat)
    i = 0
    while True:
        # Start of a path component.
        if pat.startswith(LEADING_DOUBLE_STAR, i):
            flush()
            tokens.append(Token(DOUBLE_STAR, LEADING_DOUBLE_STAR))
            i += len(LEADING_DOUBLE_STAR)
            continue
        if pat[i:] == TRAILING_DOUBLE_STAR:
            flush()
            tokens.append(Token(DOUBLE_STAR, TRAILING_DOUBLE_STAR))
            return tokens

        while True:
            if i >= n:
                flush()
                return tokens
            start = i
            c = pat[i]
            i += 1
            if c == "/":
                buf.append(c)
                break
            if c == "*":
                flush()
                tokens.append(Token(STAR, c))
            elif c == "?":
                flush()
                tokens.append(Token(QUESTION_MARK, c))
            elif c == "[":
                flush()
                if i < n and pat[i] == "!":
                    i += 1
                first = True
                while True:
                    if i >= n or pat[i] == "/":
                        return None
                    c = pat[i]
                    i += 1
                    if not first and c == "]":
                        break
                    first = False
                tokens.append(Token(CHARACTER_CLASS, pat[start:i]))
            elif c == "\\":
                if i >= n:
                    # Backslash at end of pattern is used literally.
                    buf.append(c)
                    flush()
                    return tokens
                escaped = pat[i]
                i += 1
                buf.append(escaped)
                if escaped == "/":
                    break
            else:
                buf.append(c)


def _is_valid_text(s: str) -> bool:
    try:
        s.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _trim_right(s: str) -> str:
    """Strip trailing whitespace unless it is escaped with a backslash."""
    end = prev_end = len(s)
    while end > 0:
        c = s[end - 1]
        if c == "\\":
            return s[:prev_end]
        if not c.isspace():
            return s[:end]
        prev_end = end
        end -= 1
    return ""
