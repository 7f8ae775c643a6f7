"""State data models — registered biomes."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class BiomeRecord:
    """A biome registered against a host directory."""

    id: str
    root_host_dir: str
    created_at: str = ""  # ISO 8601

    def contains(self, path: str | os.PathLike) -> bool:
        """Report whether path is root_host_dir or lies below it."""
        root = os.path.abspath(self.root_host_dir)
        try:
            return os.path.commonpath([root, os.path.abspath(path)]) == root
        except ValueError:
            # Different drives.
            return False
