"""Persistent biome state — registered biomes and their stamp tables."""

from biome.state.models import BiomeRecord
from biome.state.store import BiomeStore, StoreError

__all__ = ["BiomeRecord", "BiomeStore", "StoreError"]
