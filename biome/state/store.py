"""File-based store for biome records and their stamp tables.

Layout under the cache directory::

    index.json              id -> record
    index.lock              held while the index is modified
    locks/<id>.lock         held for the duration of a push
    stamps/<id>.json        stamp table of the last successful push
    biomes/<id[:2]>/<id[2:]>/{home,work}

The index is re-read on every access, so several processes can share one
cache directory.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import secrets
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from biome.backend.local import LocalBiome
from biome.state.models import BiomeRecord
from biome.utils.config import cache_home

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A biome record or stamp table could not be read or written."""


class BiomeStore:
    """JSON-file store of biome records and stamp tables."""

    INDEX_FILE = "index.json"
    INDEX_LOCK_FILE = "index.lock"
    LOCKS_DIR = "locks"
    STAMPS_DIR = "stamps"
    BIOMES_DIR = "biomes"

    def __init__(self, cache_dir: str | Path | None = None):
        self.cache_dir = Path(cache_dir) if cache_dir else cache_home() / "biome"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.cache_dir / self.INDEX_FILE

    def create(self, root_host_dir: str | Path) -> BiomeRecord:
        """Register a new biome for a host directory."""
        root = os.path.abspath(root_host_dir)
        if not os.path.isdir(root):
            raise StoreError(f"create biome: {root} is not a directory")
        record = BiomeRecord(
            id=secrets.token_hex(16),
            root_host_dir=root,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        support = self.support_root(record.id)
        for sub in ("home", "work"):
            (support / sub).mkdir(parents=True, exist_ok=True)
        with self._locked_index() as index:
            index[record.id] = _record_to_dict(record)
            self._save_index(index)
        logger.debug("Created biome %s for %s", record.id, root)
        return record

    def get(self, biome_id: str) -> BiomeRecord:
        data = self._load_index().get(biome_id)
        if data is None:
            raise StoreError(f"biome {biome_id} not found")
        return _dict_to_record(data)

    def find(self, biome_id: str, cwd: str | Path) -> BiomeRecord:
        """Return the biome named by id, or the one whose root contains cwd.

        With an empty id exactly one registered biome must contain cwd.
        """
        if biome_id:
            return self.get(biome_id)
        matches = [r for r in self.list_all() if r.contains(cwd)]
        if not matches:
            raise StoreError(f"no biome found for {cwd}")
        if len(matches) > 1:
            ids = ", ".join(r.id for r in matches)
            raise StoreError(f"multiple biomes found for {cwd}: {ids}")
        return matches[0]

    def list_all(self) -> list[BiomeRecord]:
        records = [_dict_to_record(d) for d in self._load_index().values()]
        return sorted(records, key=lambda r: (r.root_host_dir, r.id))

    def destroy(self, biome_id: str) -> None:
        """Remove a biome's record, stamp table and support directory.

        Waits for a push in progress to finish first.
        """
        with self.lock_biome(biome_id):
            with self._locked_index() as index:
                if biome_id not in index:
                    raise StoreError(f"biome {biome_id} not found")
                del index[biome_id]
                self._save_index(index)
            try:
                self._stamps_path(biome_id).unlink()
            except FileNotFoundError:
                pass
            support = self.support_root(biome_id)
            if support.exists():
                shutil.rmtree(support)
        logger.debug("Destroyed biome %s", biome_id)

    def read_stamps(self, biome_id: str) -> dict[str, str]:
        """Return the stamp table of the last successful push, empty if none."""
        path = self._stamps_path(biome_id)
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise StoreError(f"read stamps for {biome_id}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"read stamps for {biome_id}: not a JSON object")
        return data

    def replace_stamps(self, biome_id: str, stamps: dict[str, str]) -> None:
        """Atomically replace a biome's stamp table."""
        path = self._stamps_path(biome_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            _write_json_atomic(path, stamps)
        except OSError as e:
            raise StoreError(f"replace stamps for {biome_id}: {e}") from e

    def support_root(self, biome_id: str) -> Path:
        return self.cache_dir / self.BIOMES_DIR / biome_id[:2] / biome_id[2:]

    def open_biome(self, record: BiomeRecord) -> LocalBiome:
        """Return a local biome rooted at the record's support directory."""
        support = self.support_root(record.id)
        home = support / "home"
        work = support / "work"
        home.mkdir(parents=True, exist_ok=True)
        work.mkdir(parents=True, exist_ok=True)
        return LocalBiome(home_dir=home, work_dir=work)

    @contextmanager
    def lock_biome(self, biome_id: str) -> Iterator[None]:
        """Hold a biome's exclusive lock, blocking until other holders release it.

        A push holds it from reading the previous stamp table until the new
        one is stored.
        """
        with _exclusive_lock(self.cache_dir / self.LOCKS_DIR / f"{biome_id}.lock"):
            yield

    @contextmanager
    def _locked_index(self) -> Iterator[dict[str, dict]]:
        with _exclusive_lock(self.cache_dir / self.INDEX_LOCK_FILE):
            yield self._load_index()

    def _stamps_path(self, biome_id: str) -> Path:
        return self.cache_dir / self.STAMPS_DIR / f"{biome_id}.json"

    def _load_index(self) -> dict[str, dict]:
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path) as f:
                return json.load(f)
        except ValueError as e:
            raise StoreError(f"read {self.index_path}: {e}") from e

    def _save_index(self, index: dict[str, dict]) -> None:
        try:
            _write_json_atomic(self.index_path, index)
        except OSError as e:
            raise StoreError(f"write {self.index_path}: {e}") from e


@contextmanager
def _exclusive_lock(path: Path) -> Iterator[None]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        f = open(path, "w", encoding="utf-8")
    except OSError as e:
        raise StoreError(f"lock {path}: {e}") from e
    with f:
        fcntl.flock(f, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


def _write_json_atomic(path: Path, data: object) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _record_to_dict(record: BiomeRecord) -> dict:
    return {
        "id": record.id,
        "root_host_dir": record.root_host_dir,
        "created_at": record.created_at,
    }


def _dict_to_record(data: dict) -> BiomeRecord:
    return BiomeRecord(
        id=data["id"],
        root_host_dir=data["root_host_dir"],
        created_at=data.get("created_at", ""),
    )
