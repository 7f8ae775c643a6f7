"""Incremental sync — the layer that keeps a biome's work directory current.

This package provides the primitives for:
- Stamps: cheap metadata fingerprints that detect changed files
- Bundling: zip archives holding only what changed since the last push
- Pipes: streaming an archive to a biome while it is being built
- Push: removing stale paths, extracting the archive and recording stamps
"""
