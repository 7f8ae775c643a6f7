"""Backend data models — biome descriptors, directories and invocations."""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, field
from typing import IO, Any

LINUX = "linux"
MACOS = "darwin"
WINDOWS = "windows"

AMD64 = "amd64"
ARM64 = "arm64"
I386 = "386"

_MACHINE_ARCH = {
    "x86_64": AMD64,
    "amd64": AMD64,
    "aarch64": ARM64,
    "arm64": ARM64,
    "i386": I386,
    "i686": I386,
    "x86": I386,
}


@dataclass(frozen=True)
class Descriptor:
    """Operating system and architecture of a biome."""

    os: str = LINUX
    arch: str = AMD64

    @classmethod
    def local(cls) -> Descriptor:
        """Describe the host this process runs on."""
        if sys.platform.startswith("win"):
            os_name = WINDOWS
        elif sys.platform == "darwin":
            os_name = MACOS
        else:
            os_name = LINUX
        machine = platform.machine().lower()
        return cls(os=os_name, arch=_MACHINE_ARCH.get(machine, machine))


@dataclass(frozen=True)
class Dirs:
    """Well-known directories inside a biome.

    ``work`` holds the synchronized copy of the host tree; ``home`` is the
    biome's private home directory.
    """

    work: str = ""
    home: str = ""


@dataclass
class Invocation:
    """A request to run a program inside a biome.

    ``dir`` is resolved against the work directory when relative; an empty
    ``dir`` means the work directory itself. Missing streams read nothing and
    discard output, unless ``interactive`` is set: then they are connected to
    the terminal the caller runs in.
    """

    argv: list[str]
    dir: str = ""
    env: dict[str, str] = field(default_factory=dict)
    stdin: IO[Any] | None = None
    stdout: IO[Any] | None = None
    stderr: IO[Any] | None = None
    interactive: bool = False
