"""The biome interface and helpers built on top of it.

Every biome can run programs. Some biomes also offer optimized operations
such as copying a file in directly; those optional capabilities raise
:class:`UnsupportedError` when absent, and the module-level helpers fall back
to running a standard program instead.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from typing import IO, Any

from biome.backend.models import Descriptor, Dirs, Invocation

logger = logging.getLogger(__name__)


class BiomeError(Exception):
    """An operation inside a biome failed."""


class UnsupportedError(BiomeError):
    """The biome does not provide an optional capability."""


class RunError(BiomeError):
    """A program exited with a non-zero status."""

    def __init__(self, argv: list[str], exit_code: int):
        super().__init__(f"{argv[0] if argv else '<empty>'}: exit status {exit_code}")
        self.argv = argv
        self.exit_code = exit_code


class Biome(ABC):
    """An environment that can run programs against a copy of a host tree."""

    @abstractmethod
    def describe(self) -> Descriptor:
        """Return the biome's operating system and architecture."""

    @abstractmethod
    def dirs(self) -> Dirs:
        """Return the biome's work and home directories."""

    @abstractmethod
    def run(self, invoke: Invocation) -> None:
        """Run a program and wait for it to exit.

        Raises:
            RunError: If the program exits with a non-zero status.
            BiomeError: If the program could not be started.
        """

    def write_file(self, path: str, src: IO[bytes]) -> None:
        """Optional: copy src into the file at path."""
        raise UnsupportedError(f"write file {path}")

    def read_file(self, path: str, dst: IO[bytes]) -> None:
        """Optional: copy the file at path into dst."""
        raise UnsupportedError(f"read file {path}")

    def close(self) -> None:
        pass

    def __enter__(self) -> "Biome":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def write_file(bio: Biome, path: str, src: IO[bytes]) -> None:
    """Copy src to path inside the biome, relative to its work directory.

    Uses the biome's own ``write_file`` when it has one, otherwise runs
    ``tee``.
    """
    try:
        bio.write_file(path, src)
        return
    except UnsupportedError:
        logger.debug("%s has no native write_file; using tee", type(bio).__name__)
    stderr = io.BytesIO()
    try:
        bio.run(Invocation(argv=["tee", path], stdin=src, stderr=stderr))
    except BiomeError as e:
        raise BiomeError(f"write file {path}: {_failure_reason(stderr, e)}") from e


def read_file(bio: Biome, path: str, dst: IO[bytes]) -> None:
    """Copy the file at path inside the biome into dst.

    Uses the biome's own ``read_file`` when it has one, otherwise runs
    ``cat``.
    """
    try:
        bio.read_file(path, dst)
        return
    except UnsupportedError:
        logger.debug("%s has no native read_file; using cat", type(bio).__name__)
    stderr = io.BytesIO()
    try:
        bio.run(Invocation(argv=["cat", "--", path], stdout=dst, stderr=stderr))
    except BiomeError as e:
        raise BiomeError(f"read file {path}: {_failure_reason(stderr, e)}") from e


def _failure_reason(stderr: io.BytesIO, error: Exception) -> str:
    message = stderr.getvalue().decode("utf-8", errors="replace").rstrip("\n")
    return message or str(error)
