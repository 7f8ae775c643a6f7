"""In-process fake biome for tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from biome.backend.base import Biome, BiomeError
from biome.backend.models import Descriptor, Dirs, Invocation


@dataclass
class FakeBiome(Biome):
    """A biome whose behavior is supplied by the test.

    ``run`` forwards every invocation to ``run_func``. Optional capabilities
    are not provided, so helpers fall back to running programs.
    """

    descriptor: Descriptor = field(default_factory=Descriptor)
    dirs_result: Dirs = field(default_factory=Dirs)
    run_func: Optional[Callable[[Invocation], None]] = None

    def describe(self) -> Descriptor:
        return self.descriptor

    def dirs(self) -> Dirs:
        return self.dirs_result

    def run(self, invoke: Invocation) -> None:
        if self.run_func is None:
            raise BiomeError("fake run: run_func not set")
        self.run_func(invoke)
