"""Biome backends — the environments programs run in.

A biome exposes a work directory holding a copy of a host tree, a private
home directory and a way to run programs. ``LocalBiome`` runs them on the
host; ``FakeBiome`` lets tests script the behavior.
"""

from biome.backend.base import (
    Biome,
    BiomeError,
    RunError,
    UnsupportedError,
    read_file,
    write_file,
)
from biome.backend.fake import FakeBiome
from biome.backend.local import LocalBiome
from biome.backend.models import Descriptor, Dirs, Invocation

__all__ = [
    "Biome",
    "BiomeError",
    "Descriptor",
    "Dirs",
    "FakeBiome",
    "Invocation",
    "LocalBiome",
    "RunError",
    "UnsupportedError",
    "read_file",
    "write_file",
]
