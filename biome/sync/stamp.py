"""Stamps — metadata fingerprints used to detect changed files.

A stamp is derived only from file system metadata (modification time, size,
inode, mode, owner). No content is hashed, so a file rewritten with identical
metadata within the same microsecond is indistinguishable from the original.
"""

from __future__ import annotations

import stat

from biome.sync.tree import FileInfo, Tree

# Stamp of every directory.
DIR_STAMP = "dir"

# Target suffix of a symlink whose target cannot be stat'ed.
MISSING_TARGET = "0"


def marshal_stamp(info: FileInfo) -> str:
    """Encode info as ``<sec>.<micros>-<size>-<ino>-<mode>-<uid>-<gid>``."""
    if info.is_dir:
        return DIR_STAMP
    sec, usec = divmod(info.mtime_ns // 1000, 1_000_000)
    return f"{sec}.{usec:06d}-{info.size}-{info.ino}-{info.mode}-{info.uid}-{info.gid}"


def read_stamp(tree: Tree, path: str, info: FileInfo) -> str:
    """Return the stamp of the entry at path, given its lstat info.

    Symlink stamps include the stamp of their target so that a change to the
    target also changes the link's stamp.
    """
    pre = marshal_stamp(info)
    if not info.is_symlink:
        return pre
    try:
        target = tree.stat(path)
    except OSError:
        return f"{pre}+{MISSING_TARGET}"
    return f"{pre}+{marshal_stamp(target)}"


def stamp_mode(stamp: str) -> int:
    """Recover the ``st_mode`` recorded in a stamp, or 0 if it has none."""
    if stamp == DIR_STAMP:
        return stat.S_IFDIR | 0o777
    # Only the entry's own part; a symlink's target stamp follows the "+".
    fields = stamp.split("+", 1)[0].rsplit("-", 5)
    if len(fields) != 6:
        return 0
    try:
        return int(fields[3])
    except ValueError:
        return 0
