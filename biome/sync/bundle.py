"""Bundle — incremental archive of a tree's changes since the last push.

``bundle`` walks a tree, skips entries excluded by ignore rules, compares each
entry's stamp to the stamp recorded by the previous call and writes a zip
archive holding every directory plus every changed file and symlink. It also
returns the paths that must be removed at the destination before the archive
is extracted: deleted entries and entries whose type changed.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Mapping, Sequence

from biome.ignore import IGNORE_FILE_NAME, Pattern, last_match, parse_lines
from biome.sync.stamp import DIR_STAMP, read_stamp, stamp_mode
from biome.sync.tree import FileInfo, Tree

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024

# Zip entries record Unix mode bits in the high half of external_attr.
_UNIX_SYSTEM = 3
_MSDOS_DIRECTORY = 0x10
_MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_MAX_DATE_TIME = (2107, 12, 31, 23, 59, 59)


class BundleError(Exception):
    """A fatal, path-qualified bundling failure."""

    def __init__(self, path: str, cause: object):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


class SymlinkEscapeError(BundleError):
    """A symlink points outside the link root."""


class UnsupportedFileError(BundleError):
    """An entry is neither a regular file, a directory nor a symlink."""


class BundleCancelledError(BundleError):
    """The bundle was cancelled by the caller."""


@dataclass
class BundleOptions:
    """Inputs of a bundle call beyond the tree itself.

    Attributes:
        global_ignore: Patterns applied before the tree's own ignore file.
        prev_stamps: Stamp table returned by the previous call, empty at first.
        link_root: On-disk directory backing the tree. Required to read
            symlinks; a symlink found without it is an error.
        cancelled: Event that aborts the bundle when set.
    """

    global_ignore: Sequence[Pattern] = ()
    prev_stamps: Mapping[str, str] = field(default_factory=dict)
    link_root: str | Path | None = None
    cancelled: threading.Event | None = None


@dataclass
class BundleResult:
    """Outcome of a successful bundle call.

    ``stamps`` replaces the caller's stamp table only after the archive has
    been delivered. ``to_remove`` lists slash-separated paths to delete
    recursively at the destination before extracting the archive.
    ``entry_count`` is the number of entries written to the archive.
    """

    stamps: dict[str, str] = field(default_factory=dict)
    to_remove: list[str] = field(default_factory=list)
    entry_count: int = 0


def bundle(out: BinaryIO, tree: Tree, options: BundleOptions | None = None) -> BundleResult:
    """Write a zip archive of the changes in tree to out.

    The archive is finalized only if the whole walk succeeds; otherwise a
    :class:`BundleError` is raised and no stamp table is returned.
    """
    opts = options or BundleOptions()
    patterns = list(opts.global_ignore)
    patterns.extend(read_local_ignore(tree))
    return _Bundler(out, tree, opts, patterns).run()


def read_local_ignore(tree: Tree) -> list[Pattern]:
    """Read the ignore file at the root of tree. A missing file yields no patterns."""
    try:
        data = tree.read_bytes(IGNORE_FILE_NAME)
    except FileNotFoundError:
        return []
    except OSError as e:
        raise BundleError(IGNORE_FILE_NAME, e) from e
    return parse_lines(data.split(b"\n"))


class _Bundler:
    def __init__(self, out: BinaryIO, tree: Tree, opts: BundleOptions, patterns: list[Pattern]):
        self.tree = tree
        self.patterns = patterns
        self.prev_stamps = opts.prev_stamps or {}
        self.link_root = os.fspath(opts.link_root) if opts.link_root else None
        self.cancelled = opts.cancelled
        self.result = BundleResult()
        self.sink = _ArchiveSink(out)
        self.zip = zipfile.ZipFile(self.sink, "w")

    def run(self) -> BundleResult:
        try:
            self._walk()
            try:
                self.zip.close()
            except OSError as e:
                raise BundleError("finalize archive", e) from e
        except BaseException:
            # Closing writes the central directory, which must not reach out.
            self.sink.abandoned = True
            self.zip.close()
            raise

        for path in self.prev_stamps:
            if path not in self.result.stamps:
                self.result.to_remove.append(path)
        return self.result

    def _walk(self) -> None:
        # Pre-order, depth-first, lexical.
        stack = list(reversed(self._children(".")))
        while stack:
            path = stack.pop()
            self._check_cancelled(path)
            try:
                info = self.tree.lstat(path)
            except OSError as e:
                logger.warning("Could not stat %s: %s", path, e)
                continue
            pat = last_match(self.patterns, path, info.is_dir)
            if pat is not None and not pat.negate:
                # Excluding a directory also prunes everything below it.
                logger.debug("Ignored %s due to rule %r", path, str(pat))
                continue
            self._visit(path, info)
            if info.is_dir:
                stack.extend(reversed(self._children(path)))

    def _children(self, dir_path: str) -> list[str]:
        try:
            names = self.tree.listdir(dir_path)
        except OSError as e:
            logger.warning("Could not list %s: %s", dir_path, e)
            return []
        if dir_path == ".":
            return [name for name in names if name != IGNORE_FILE_NAME]
        return [f"{dir_path}/{name}" for name in names]

    def _check_cancelled(self, path: str) -> None:
        if self.cancelled is not None and self.cancelled.is_set():
            raise BundleCancelledError(path, "cancelled")

    def _visit(self, path: str, info: FileInfo) -> None:
        old_stamp = self.prev_stamps.get(path, "")
        new_stamp = read_stamp(self.tree, path, info)
        self.result.stamps[path] = new_stamp
        if old_stamp == new_stamp and not info.is_dir:
            logger.debug("%s has not changed", path)
            return
        logger.debug("%s stamp %r -> %r", path, old_stamp, new_stamp)

        if info.is_dir:
            if old_stamp and old_stamp != DIR_STAMP:
                self.result.to_remove.append(path)
            self._write_entry(_zip_info(path + "/", info, zipfile.ZIP_STORED), b"")
        elif info.is_symlink:
            target = self._link_target(path)
            if old_stamp:
                # Extraction cannot overwrite a symlink in place.
                self.result.to_remove.append(path)
            self._write_entry(_zip_info(path, info, zipfile.ZIP_STORED), target.encode("utf-8"))
        elif info.is_regular:
            old_mode = stamp_mode(old_stamp) if old_stamp else 0
            if stat.S_ISDIR(old_mode) or stat.S_ISLNK(old_mode):
                self.result.to_remove.append(path)
            self._copy_file(path, info)
        else:
            raise UnsupportedFileError(path, "not a file, directory, or symlink")

    def _write_entry(self, zinfo: zipfile.ZipInfo, data: bytes) -> None:
        try:
            self.zip.writestr(zinfo, data)
        except OSError as e:
            raise BundleError(zinfo.filename, e) from e
        self.result.entry_count += 1

    def _copy_file(self, path: str, info: FileInfo) -> None:
        zinfo = _zip_info(path, info, zipfile.ZIP_DEFLATED)
        # Size hint so large files get zip64 headers.
        zinfo.file_size = info.size
        try:
            with self.tree.open(path) as src, self.zip.open(zinfo, "w") as dst:
                while True:
                    chunk = src.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    self._check_cancelled(path)
                    dst.write(chunk)
        except OSError as e:
            raise BundleError(path, e) from e
        self.result.entry_count += 1

    def _link_target(self, path: str) -> str:
        """Return the target of the symlink at path, relative to the link's directory."""
        if self.link_root is None:
            raise BundleError(path, "found symlink on unsupported file system")
        link_path = os.path.join(self.link_root, *path.split("/"))
        try:
            raw_target = os.readlink(link_path)
        except OSError as e:
            raise BundleError(path, e) from e
        link_dir = os.path.dirname(link_path)
        abs_target = os.path.normpath(os.path.join(link_dir, raw_target))
        try:
            rel_to_root = os.path.relpath(abs_target, self.link_root)
        except ValueError as e:
            # Different drives.
            raise SymlinkEscapeError(path, e) from e
        if not _is_sub_path(rel_to_root):
            raise SymlinkEscapeError(
                path, f"symlink refers to {raw_target} which is outside {self.link_root}"
            )
        return os.path.relpath(abs_target, link_dir).replace(os.sep, "/")


class _ArchiveSink:
    """Forwards archive bytes to the caller's stream until the bundle is abandoned.

    Writing through a stream without ``tell`` also makes :mod:`zipfile` emit
    data descriptors instead of seeking back to patch headers.
    """

    def __init__(self, out: BinaryIO):
        self.out = out
        self.abandoned = False

    def write(self, data: bytes) -> int:
        if self.abandoned:
            return len(data)
        return self.out.write(data)

    def flush(self) -> None:
        if not self.abandoned:
            self.out.flush()


def _is_sub_path(rel: str) -> bool:
    """Report whether a relative path stays inside its base directory."""
    rel = os.path.normpath(rel)
    return not (os.path.isabs(rel) or rel == os.pardir or rel.startswith(os.pardir + os.sep))


def _zip_info(name: str, info: FileInfo, compress_type: int) -> zipfile.ZipInfo:
    zinfo = zipfile.ZipInfo(name, _zip_date_time(info.mtime_ns))
    zinfo.create_system = _UNIX_SYSTEM
    zinfo.external_attr = (info.mode & 0xFFFF) << 16
    if info.is_dir:
        zinfo.external_attr |= _MSDOS_DIRECTORY
    zinfo.compress_type = compress_type
    return zinfo


def _zip_date_time(mtime_ns: int) -> tuple[int, int, int, int, int, int]:
    try:
        date_time = time.localtime(mtime_ns // 1_000_000_000)[:6]
    except (OverflowError, OSError, ValueError):
        return _MIN_DATE_TIME
    return min(max(date_time, _MIN_DATE_TIME), _MAX_DATE_TIME)
