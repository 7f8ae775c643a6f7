"""Path grammar for biomes.

A biome may run a different operating system than the host, so paths inside
it are manipulated lexically according to the biome's :class:`Descriptor`
rather than with :mod:`os.path`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from biome.paths import posix, windows

if TYPE_CHECKING:
    from biome.backend.base import Biome
    from biome.backend.models import Descriptor

WINDOWS = "windows"


def _dialect(desc: Descriptor):
    return windows if desc.os == WINDOWS else posix


def join_path(desc: Descriptor, *elems: str) -> str:
    """Join any number of path elements into a single cleaned path.

    Returns an empty string if there are no elements or all of them are empty.
    """
    return _dialect(desc).join(*elems)


def clean_path(desc: Descriptor, path: str) -> str:
    """Return the shortest equivalent path. An empty path cleans to ``"."``."""
    if path == "":
        return "."
    return join_path(desc, path)


def is_abs_path(desc: Descriptor, path: str) -> bool:
    return _dialect(desc).is_abs(path)


def from_slash(desc: Descriptor, path: str) -> str:
    """Replace each ``/`` in path with the biome's separator."""
    return _dialect(desc).from_slash(path)


def abs_path(bio: Biome, path: str) -> str:
    """Return an absolute, cleaned form of path inside the biome.

    Relative paths are resolved against the biome's work directory.
    """
    desc = bio.describe()
    if is_abs_path(desc, path):
        return clean_path(desc, path)
    return join_path(desc, bio.dirs().work, path)


__all__ = [
    "WINDOWS",
    "abs_path",
    "clean_path",
    "from_slash",
    "is_abs_path",
    "join_path",
]
