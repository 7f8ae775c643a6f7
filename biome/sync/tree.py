"""Readable file trees for the bundler.

A tree addresses entries by slash-separated paths relative to its root, with
``"."`` naming the root itself. :class:`DirTree` reads a directory on disk;
:class:`MemoryTree` holds files in memory and is mostly useful in tests.
"""

from __future__ import annotations

import io
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO


@dataclass(frozen=True)
class FileInfo:
    """Metadata of one tree entry, as reported by lstat or stat.

    ``mode`` holds the raw ``st_mode`` (file type and permission bits).
    Fields a platform does not expose are 0.
    """

    name: str
    mode: int
    size: int = 0
    mtime_ns: int = 0
    ino: int = 0
    uid: int = 0
    gid: int = 0

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> FileInfo:
        return cls(
            name=name,
            mode=st.st_mode,
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
            ino=getattr(st, "st_ino", 0) or 0,
            uid=getattr(st, "st_uid", 0) or 0,
            gid=getattr(st, "st_gid", 0) or 0,
        )

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)


class Tree(ABC):
    """A read-only file hierarchy."""

    @abstractmethod
    def lstat(self, path: str) -> FileInfo:
        """Return metadata of path without following a final symlink."""

    @abstractmethod
    def stat(self, path: str) -> FileInfo:
        """Return metadata of path, following symlinks."""

    @abstractmethod
    def listdir(self, path: str) -> list[str]:
        """Return the names of a directory's entries in lexical order."""

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open a regular file for binary reading."""

    def read_bytes(self, path: str) -> bytes:
        with self.open(path) as f:
            return f.read()


def _base_name(path: str) -> str:
    return "." if path == "." else path.rsplit("/", 1)[-1]


class DirTree(Tree):
    """The directory tree rooted at an on-disk directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _os_path(self, path: str) -> Path:
        if path == ".":
            return self.root
        return self.root.joinpath(*path.split("/"))

    def lstat(self, path: str) -> FileInfo:
        return FileInfo.from_stat(_base_name(path), os.lstat(self._os_path(path)))

    def stat(self, path: str) -> FileInfo:
        return FileInfo.from_stat(_base_name(path), os.stat(self._os_path(path)))

    def listdir(self, path: str) -> list[str]:
        return sorted(os.listdir(self._os_path(path)))

    def open(self, path: str) -> BinaryIO:
        return open(self._os_path(path), "rb")

    def __repr__(self) -> str:
        return f"DirTree({str(self.root)!r})"


@dataclass
class MemoryFile:
    """A file or directory held by a :class:`MemoryTree`.

    ``mode`` is a raw ``st_mode``; permission bits alone mean a regular file.
    """

    data: bytes = b""
    mode: int = 0o644
    mtime_ns: int = 0

    def __post_init__(self):
        if stat.S_IFMT(self.mode) == 0:
            self.mode |= stat.S_IFREG


@dataclass
class MemoryTree(Tree):
    """An in-memory tree keyed by slash-separated path.

    Parent directories that are not listed explicitly are synthesized with
    mode ``0o555``.
    """

    files: dict[str, MemoryFile] = field(default_factory=dict)

    def _entry(self, path: str) -> MemoryFile:
        if path in self.files:
            return self.files[path]
        if path == "." or self._has_children(path):
            return MemoryFile(mode=stat.S_IFDIR | 0o555)
        raise FileNotFoundError(path)

    def _has_children(self, path: str) -> bool:
        prefix = path + "/"
        return any(name.startswith(prefix) for name in self.files)

    def lstat(self, path: str) -> FileInfo:
        entry = self._entry(path)
        return FileInfo(
            name=_base_name(path),
            mode=entry.mode,
            size=0 if stat.S_ISDIR(entry.mode) else len(entry.data),
            mtime_ns=entry.mtime_ns,
        )

    def stat(self, path: str) -> FileInfo:
        info = self.lstat(path)
        if info.is_symlink:
            # Memory trees do not resolve links.
            raise FileNotFoundError(path)
        return info

    def listdir(self, path: str) -> list[str]:
        if not stat.S_ISDIR(self._entry(path).mode):
            raise NotADirectoryError(path)
        prefix = "" if path == "." else path + "/"
        names = set()
        for name in self.files:
            if name.startswith(prefix):
                names.add(name[len(prefix):].split("/", 1)[0])
        return sorted(names)

    def open(self, path: str) -> BinaryIO:
        entry = self._entry(path)
        if stat.S_ISDIR(entry.mode):
            raise IsADirectoryError(path)
        return io.BytesIO(entry.data)
