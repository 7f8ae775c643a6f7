"""Windows path dialect — lexical path handling for drive letters, UNC roots and devices.

These functions never touch the file system, so they behave the same on every
host. Forward slashes are accepted as separators on input; output always uses
backslashes.
"""

from __future__ import annotations

SEPARATOR = "\\"

RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


def is_slash(c: str) -> bool:
    return c == "\\" or c == "/"


def is_reserved_name(path: str) -> bool:
    """Report whether path is a reserved device name such as ``NUL``."""
    return path.upper() in RESERVED_NAMES


def volume_name_len(path: str) -> int:
    """Return the length of the leading volume name (drive or UNC share)."""
    if len(path) < 2:
        return 0
    c = path[0]
    if path[1] == ":" and ("a" <= c <= "z" or "A" <= c <= "Z"):
        return 2
    # \\host\share
    n = len(path)
    if n >= 5 and is_slash(path[0]) and is_slash(path[1]) and not is_slash(path[2]) and path[2] != ".":
        i = 3
        while i < n - 1:
            if is_slash(path[i]):
                i += 1
                if is_slash(path[i]) or path[i] == ".":
                    return 0
                while i < n and not is_slash(path[i]):
                    i += 1
                return i
            i += 1
    return 0


def volume_name(path: str) -> str:
    return path[: volume_name_len(path)]


def is_unc(path: str) -> bool:
    return volume_name_len(path) > 2


def from_slash(path: str) -> str:
    return path.replace("/", SEPARATOR)


def is_abs(path: str) -> bool:
    """Report whether path is absolute.

    Only drive-absolute paths (``C:\\x``), UNC paths with a trailing component
    and reserved device names count. A bare leading separator is relative to
    the current drive and is therefore not absolute.
    """
    if is_reserved_name(path):
        return True
    vol_len = volume_name_len(path)
    if vol_len == 0:
        return False
    rest = path[vol_len:]
    return rest != "" and is_slash(rest[0])


def clean(path: str) -> str:
    """Return the shortest path equivalent to path by purely lexical processing.

    Repeated separators and ``.`` elements are removed, ``..`` elements are
    resolved against the preceding element and never climb above a rooted
    path. The volume name is preserved, so ``C:a`` stays drive-relative.
    """
    original = path
    vol_len = volume_name_len(path)
    path = path[vol_len:]
    if path == "":
        if vol_len > 1 and original[1] != ":":
            # UNC volume on its own.
            return from_slash(original)
        return original + "."

    rooted = is_slash(path[0])
    n = len(path)
    out: list[str] = []
    r = 0
    dotdot = 0
    if rooted:
        out.append(SEPARATOR)
        r = dotdot = 1

    while r < n:
        if is_slash(path[r]):
            r += 1
        elif path[r] == "." and (r + 1 == n or is_slash(path[r + 1])):
            r += 1
        elif path[r] == "." and path[r + 1] == "." and (r + 2 == n or is_slash(path[r + 2])):
            r += 2
            if len(out) > dotdot:
                out.pop()
                if len(out) > dotdot:
                    # Separator that preceded the removed element.
                    out.pop()
            elif not rooted:
                if out:
                    out.append(SEPARATOR)
                out.append("..")
                dotdot = len(out)
        else:
            if (rooted and len(out) != 1) or (not rooted and len(out) != 0):
                out.append(SEPARATOR)
            start = r
            while r < n and not is_slash(path[r]):
                r += 1
            out.append(path[start:r])

    if not out:
        out.append(".")
    return from_slash(original[:vol_len] + "".join(out))


def join(*elems: str) -> str:
    """Join path elements with the separator and clean the result.

    Empty elements are ignored; if every element is empty the result is the
    empty string. Joining never turns non-UNC elements into a UNC path.
    """
    for i, e in enumerate(elems):
        if e != "":
            return _join_non_empty(list(elems[i:]))
    return ""


def _join_non_empty(elems: list[str]) -> str:
    first = elems[0]
    if len(first) == 2 and first[1] == ":":
        # Bare drive letter: keep the result relative to that drive.
        rest = elems[1:]
        i = 0
        while i < len(rest) and rest[i] == "":
            i += 1
        return clean(first + SEPARATOR.join(rest[i:]))

    p = clean(SEPARATOR.join(elems))
    if not is_unc(p):
        return p
    head = clean(first)
    if is_unc(head):
        return p
    tail = clean(SEPARATOR.join(elems[1:]))
    if head.endswith(SEPARATOR):
        return head + tail
    return head + SEPARATOR + tail
