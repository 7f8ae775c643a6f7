"""Tests for metadata stamps."""

import os
import stat
import sys
import tempfile
from pathlib import Path

import pytest

from biome.sync.stamp import DIR_STAMP, marshal_stamp, read_stamp, stamp_mode
from biome.sync.tree import DirTree, FileInfo, MemoryFile, MemoryTree

REGULAR_644 = stat.S_IFREG | 0o644


def test_marshal_regular_file():
    info = FileInfo(
        name="bar.txt",
        mode=REGULAR_644,
        size=1024,
        mtime_ns=123456_000789_000,
        ino=42,
        uid=1000,
        gid=100,
    )
    assert marshal_stamp(info) == f"123456.000789-1024-42-{REGULAR_644}-1000-100"


def test_marshal_truncates_to_microseconds():
    info = FileInfo(name="f", mode=REGULAR_644, mtime_ns=1_500_000_999)
    assert marshal_stamp(info).startswith("1.500000-")


def test_marshal_directory():
    info = FileInfo(name="foo", mode=stat.S_IFDIR | 0o755, size=4096, mtime_ns=99)
    assert marshal_stamp(info) == DIR_STAMP


def test_stamp_changes_with_size():
    a = FileInfo(name="f", mode=REGULAR_644, size=1)
    b = FileInfo(name="f", mode=REGULAR_644, size=2)
    assert marshal_stamp(a) != marshal_stamp(b)


def test_stamp_mode():
    info = FileInfo(name="f", mode=stat.S_IFREG | 0o755, size=3, mtime_ns=10**9)
    assert stamp_mode(marshal_stamp(info)) == stat.S_IFREG | 0o755
    assert stamp_mode(DIR_STAMP) == stat.S_IFDIR | 0o777
    assert stat.S_ISDIR(stamp_mode(DIR_STAMP))


def test_stamp_mode_of_symlink_ignores_target():
    link = FileInfo(name="l", mode=stat.S_IFLNK | 0o777, size=7)
    stamp = marshal_stamp(link) + "+" + DIR_STAMP
    assert stat.S_ISLNK(stamp_mode(stamp))
    assert stat.S_ISLNK(stamp_mode(marshal_stamp(link) + "+0"))


@pytest.mark.parametrize("stamp", ["", "garbage", "1-2-3", "1.0-2-3-x-5-6"])
def test_stamp_mode_unparseable(stamp):
    assert stamp_mode(stamp) == 0


def test_read_stamp_regular_file():
    tree = MemoryTree({"a.txt": MemoryFile(b"hello", mtime_ns=2_000_000_000)})
    info = tree.lstat("a.txt")
    assert read_stamp(tree, "a.txt", info) == marshal_stamp(info)
    assert "+" not in read_stamp(tree, "a.txt", info)


def test_read_stamp_dangling_symlink():
    tree = MemoryTree({"link": MemoryFile(b"nowhere", mode=stat.S_IFLNK | 0o777)})
    info = tree.lstat("link")
    assert read_stamp(tree, "link", info) == marshal_stamp(info) + "+0"


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
def test_read_stamp_symlink_includes_target():
    with tempfile.TemporaryDirectory() as tmpdir:
        target = Path(tmpdir) / "target.txt"
        target.write_text("v1")
        os.symlink("target.txt", Path(tmpdir) / "link")
        tree = DirTree(tmpdir)

        info = tree.lstat("link")
        before = read_stamp(tree, "link", info)
        assert before == marshal_stamp(info) + "+" + marshal_stamp(tree.stat("target.txt"))

        target.write_text("version two")
        after = read_stamp(tree, "link", tree.lstat("link"))
        assert after != before

        (Path(tmpdir) / "sub").mkdir()
        os.symlink("sub", Path(tmpdir) / "dirlink")
        assert read_stamp(tree, "dirlink", tree.lstat("dirlink")).endswith("+" + DIR_STAMP)
