"""POSIX path dialect — lexical handling of slash-separated paths."""

from __future__ import annotations

SEPARATOR = "/"


def is_abs(path: str) -> bool:
    return path.startswith("/")


def clean(path: str) -> str:
    """Return the shortest path equivalent to path by purely lexical processing.

    Unlike :func:`posixpath.normpath`, a leading ``//`` collapses to ``/``.
    """
    if path == "":
        return "."
    rooted = path.startswith("/")
    out: list[str] = []
    # Number of leading ".." elements that cannot be removed.
    dotdot = 0
    for elem in path.split("/"):
        if elem == "" or elem == ".":
            continue
        if elem == "..":
            if len(out) > dotdot:
                out.pop()
            elif not rooted:
                out.append("..")
                dotdot = len(out)
            continue
        out.append(elem)
    joined = "/".join(out)
    if rooted:
        return "/" + joined
    return joined or "."


def join(*elems: str) -> str:
    for i, e in enumerate(elems):
        if e != "":
            return clean("/".join(elems[i:]))
    return ""


def from_slash(path: str) -> str:
    return path
