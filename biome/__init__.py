"""biome — run programs against an incrementally synchronized copy of a directory."""

__version__ = "0.1.0"
