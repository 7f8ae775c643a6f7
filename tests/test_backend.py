"""Tests for biome backends and the capability helpers."""

import io
import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from biome.backend import (
    BiomeError,
    Descriptor,
    Dirs,
    FakeBiome,
    Invocation,
    LocalBiome,
    RunError,
    UnsupportedError,
    read_file,
    write_file,
)
from biome.backend.models import LINUX


def _local(tmpdir: str) -> LocalBiome:
    home = Path(tmpdir) / "home"
    work = Path(tmpdir) / "work"
    home.mkdir()
    work.mkdir()
    return LocalBiome(home_dir=home, work_dir=work)


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


# --- LocalBiome ---


def test_local_dirs_and_descriptor():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        assert bio.dirs() == Dirs(work=str(Path(tmpdir) / "work"), home=str(Path(tmpdir) / "home"))
        assert bio.describe() == Descriptor.local()


def test_local_run_in_work_dir_with_home():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        out = io.BytesIO()
        bio.run(
            Invocation(
                argv=_python("import os; print(os.getcwd()); print(os.environ['HOME'])"),
                stdout=out,
            )
        )
        cwd, home = out.getvalue().decode().splitlines()
        assert os.path.realpath(cwd) == os.path.realpath(bio.work_dir)
        assert home == bio.home_dir


def test_local_run_relative_dir_and_env():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        os.mkdir(os.path.join(bio.work_dir, "sub"))
        out = io.StringIO()
        bio.run(
            Invocation(
                argv=_python("import os; print(os.path.basename(os.getcwd()), os.environ['GREETING'])"),
                dir="sub",
                env={"GREETING": "hi"},
                stdout=out,
            )
        )
        assert out.getvalue().strip() == "sub hi"


def test_local_run_pipes_stdin():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        out = io.BytesIO()
        bio.run(
            Invocation(
                argv=_python("import sys; sys.stdout.buffer.write(sys.stdin.buffer.read()[::-1])"),
                stdin=io.BytesIO(b"abc"),
                stdout=out,
            )
        )
        assert out.getvalue() == b"cba"


def test_local_run_exit_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        err = io.BytesIO()
        with pytest.raises(RunError) as excinfo:
            bio.run(
                Invocation(
                    argv=_python("import sys; sys.stderr.write('boom'); sys.exit(3)"),
                    stderr=err,
                )
            )
        assert excinfo.value.exit_code == 3
        assert "exit status 3" in str(excinfo.value)
        assert err.getvalue() == b"boom"


def test_local_run_missing_program():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        with pytest.raises(BiomeError) as excinfo:
            bio.run(Invocation(argv=[os.path.join(tmpdir, "no-such-program")]))
        assert not isinstance(excinfo.value, RunError)


class _RecordingPopen:
    calls: list = []

    def __init__(self, argv, **kwargs):
        self.calls.append(kwargs)

    def wait(self):
        return 0


@pytest.mark.parametrize("interactive, expected", [(False, subprocess.DEVNULL), (True, None)])
def test_local_run_unset_streams(monkeypatch, interactive, expected):
    monkeypatch.setattr(_RecordingPopen, "calls", [])
    monkeypatch.setattr(subprocess, "Popen", _RecordingPopen)
    with tempfile.TemporaryDirectory() as tmpdir:
        _local(tmpdir).run(Invocation(argv=["prog"], interactive=interactive))
    (kwargs,) = _RecordingPopen.calls
    assert kwargs["stdin"] is expected
    assert kwargs["stdout"] is expected
    assert kwargs["stderr"] is expected


def test_local_write_and_read_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        os.mkdir(os.path.join(bio.work_dir, "a"))

        write_file(bio, os.path.join("a", "data.bin"), io.BytesIO(b"payload"))
        assert Path(bio.work_dir, "a", "data.bin").read_bytes() == b"payload"

        target = os.path.join(bio.home_dir, "abs.bin")
        write_file(bio, target, io.BytesIO(b"absolute"))
        assert Path(target).read_bytes() == b"absolute"

        out = io.BytesIO()
        read_file(bio, "a/data.bin", out)
        assert out.getvalue() == b"payload"


def test_local_read_missing_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(BiomeError, match="read file nope"):
            read_file(_local(tmpdir), "nope", io.BytesIO())


def test_local_write_file_into_missing_directory():
    with tempfile.TemporaryDirectory() as tmpdir:
        bio = _local(tmpdir)
        with pytest.raises(BiomeError, match="write file missing/x"):
            write_file(bio, "missing/x", io.BytesIO(b""))


# --- Capability fallbacks ---


def test_write_file_falls_back_to_tee():
    calls = []

    def run(invoke: Invocation):
        calls.append((invoke.argv, invoke.stdin.read()))

    bio = FakeBiome(run_func=run)
    write_file(bio, "/home/x.zip", io.BytesIO(b"zipdata"))
    assert calls == [(["tee", "/home/x.zip"], b"zipdata")]


def test_write_file_reports_tee_stderr():
    def run(invoke: Invocation):
        invoke.stderr.write(b"tee: /ro/x: Read-only file system\n")
        raise RunError(invoke.argv, 1)

    bio = FakeBiome(run_func=run)
    with pytest.raises(BiomeError) as excinfo:
        write_file(bio, "/ro/x", io.BytesIO(b""))
    assert str(excinfo.value) == "write file /ro/x: tee: /ro/x: Read-only file system"


def test_write_file_reports_error_without_stderr():
    def run(invoke: Invocation):
        raise RunError(invoke.argv, 2)

    with pytest.raises(BiomeError, match="write file f: tee: exit status 2"):
        write_file(FakeBiome(run_func=run), "f", io.BytesIO(b""))


def test_native_write_file_errors_are_not_retried():
    class FailingBiome(FakeBiome):
        def write_file(self, path, src):
            raise BiomeError("disk full")

    calls = []
    bio = FailingBiome(run_func=calls.append)
    with pytest.raises(BiomeError, match="disk full"):
        write_file(bio, "f", io.BytesIO(b""))
    assert calls == []


def test_read_file_falls_back_to_cat():
    calls = []

    def run(invoke: Invocation):
        calls.append(invoke.argv)
        invoke.stdout.write(b"contents")

    out = io.BytesIO()
    read_file(FakeBiome(run_func=run), "/home/x.zip", out)
    assert calls == [["cat", "--", "/home/x.zip"]]
    assert out.getvalue() == b"contents"


def test_read_file_reports_cat_stderr():
    def run(invoke: Invocation):
        invoke.stderr.write(b"cat: /x: No such file or directory\n")
        raise RunError(invoke.argv, 1)

    with pytest.raises(BiomeError) as excinfo:
        read_file(FakeBiome(run_func=run), "/x", io.BytesIO())
    assert str(excinfo.value) == "read file /x: cat: /x: No such file or directory"


def test_optional_capabilities_unsupported_by_default():
    bio = FakeBiome()
    with pytest.raises(UnsupportedError):
        bio.write_file("x", io.BytesIO())
    with pytest.raises(UnsupportedError):
        bio.read_file("x", io.BytesIO())


# --- FakeBiome ---


def test_fake_biome_without_run_func():
    bio = FakeBiome(descriptor=Descriptor(os=LINUX), dirs_result=Dirs(work="/w", home="/h"))
    assert bio.dirs().home == "/h"
    with pytest.raises(BiomeError, match="run_func not set"):
        bio.run(Invocation(argv=["true"]))


def test_fake_biome_context_manager():
    with FakeBiome() as bio:
        assert bio.describe() == Descriptor()
