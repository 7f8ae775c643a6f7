"""Local biome — runs programs as host processes in a private directory pair."""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import threading
from pathlib import Path
from typing import IO, Any

from biome.backend.base import Biome, BiomeError, RunError
from biome.backend.models import Descriptor, Dirs, Invocation

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class LocalBiome(Biome):
    """A biome backed by two directories on the host.

    Programs run directly on the host with ``HOME`` pointing at ``home_dir``
    and, by default, ``work_dir`` as their working directory.
    """

    def __init__(self, home_dir: str | Path, work_dir: str | Path):
        self.home_dir = os.fspath(home_dir)
        self.work_dir = os.fspath(work_dir)
        self._descriptor = Descriptor.local()

    def describe(self) -> Descriptor:
        return self._descriptor

    def dirs(self) -> Dirs:
        return Dirs(work=self.work_dir, home=self.home_dir)

    def _resolve(self, path: str) -> str:
        if not path:
            return self.work_dir
        return os.path.join(self.work_dir, path)

    def run(self, invoke: Invocation) -> None:
        if not invoke.argv:
            raise BiomeError("run: empty argv")
        env = dict(os.environ)
        env["HOME"] = self.home_dir
        env.update(invoke.env)

        # An interactive program shares the host terminal for any stream not given.
        unset = None if invoke.interactive else subprocess.DEVNULL
        stdin_arg = _stream_arg(invoke.stdin, unset)
        stdout_arg = _stream_arg(invoke.stdout, unset)
        stderr_arg = _stream_arg(invoke.stderr, unset)
        logger.debug("Running %s in %s", invoke.argv, self._resolve(invoke.dir))
        try:
            proc = subprocess.Popen(
                invoke.argv,
                cwd=self._resolve(invoke.dir),
                env=env,
                stdin=stdin_arg,
                stdout=stdout_arg,
                stderr=stderr_arg,
            )
        except OSError as e:
            raise BiomeError(f"run {invoke.argv[0]}: {e}") from e

        pumps = []
        if stdin_arg is subprocess.PIPE:
            pumps.append(_Pump(invoke.stdin, proc.stdin, close_dst=True))
        if stdout_arg is subprocess.PIPE:
            pumps.append(_Pump(proc.stdout, invoke.stdout))
        if stderr_arg is subprocess.PIPE:
            pumps.append(_Pump(proc.stderr, invoke.stderr))
        for pump in pumps:
            pump.start()
        exit_code = proc.wait()
        for pump in pumps:
            pump.join()
        if exit_code != 0:
            raise RunError(invoke.argv, exit_code)
        for pump in pumps:
            if pump.error is not None:
                raise BiomeError(f"run {invoke.argv[0]}: {pump.error}") from pump.error

    def write_file(self, path: str, src: IO[bytes]) -> None:
        dst_path = self._resolve(path)
        try:
            with open(dst_path, "wb") as dst:
                shutil.copyfileobj(src, dst, _CHUNK_SIZE)
        except OSError as e:
            raise BiomeError(f"write file {path}: {e}") from e

    def read_file(self, path: str, dst: IO[bytes]) -> None:
        try:
            with open(self._resolve(path), "rb") as src:
                shutil.copyfileobj(src, dst, _CHUNK_SIZE)
        except OSError as e:
            raise BiomeError(f"read file {path}: {e}") from e


def _stream_arg(stream: IO[Any] | None, default: int | None) -> Any:
    """Pass streams with a real file descriptor through; pump the rest."""
    if stream is None:
        return default
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return subprocess.PIPE
    return stream


class _Pump(threading.Thread):
    """Copies bytes between a process pipe and an arbitrary stream."""

    def __init__(self, src: IO[Any], dst: IO[Any], close_dst: bool = False):
        super().__init__(daemon=True)
        self.src = src
        self.dst = dst
        self.close_dst = close_dst
        self.error: Exception | None = None

    def run(self) -> None:
        text_dst = isinstance(self.dst, io.TextIOBase)
        try:
            while True:
                chunk = self.src.read(_CHUNK_SIZE)
                if not chunk:
                    break
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                if text_dst:
                    chunk = chunk.decode("utf-8", errors="replace")
                self.dst.write(chunk)
        except BrokenPipeError:
            # The process stopped reading its input.
            pass
        except Exception as e:
            # Reported by LocalBiome.run once the process has exited.
            self.error = e
        finally:
            if self.close_dst:
                try:
                    self.dst.close()
                except BrokenPipeError:
                    pass
