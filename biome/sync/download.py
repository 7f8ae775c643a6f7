"""Download — copy files from a biome's work directory back to the host.

The requested paths are zipped inside the biome, the archive is copied to a
temporary file on the host and extracted over the host directory. Downloaded
files are not stamped, so the next push sends them back.
"""

from __future__ import annotations

import logging
import os
import secrets
import subprocess
import sys
import tempfile
from typing import Sequence

from biome.backend.base import Biome, BiomeError, read_file
from biome.backend.models import Invocation
from biome.paths import from_slash, join_path
from biome.state.models import BiomeRecord
from biome.sync.push import remove_biome_file

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Copying files out of a biome failed."""

    def __init__(self, record: BiomeRecord, cause: object):
        super().__init__(f"download from {record.id}: {cause}")
        self.record = record
        self.cause = cause


def download_files(record: BiomeRecord, bio: Biome, files: Sequence[str]) -> None:
    """Copy files and directories from bio into record.root_host_dir.

    Each entry of files is a host path, absolute or relative to the current
    directory, that must lie inside the biome's root. Existing host files are
    overwritten.

    Raises:
        DownloadError: If a path is outside the root or any step fails.
    """
    desc = bio.describe()
    biome_paths = [from_slash(desc, _relative_to_root(record, f)) for f in files]
    zip_path = join_path(desc, bio.dirs().home, secrets.token_hex(8) + ".zip")
    try:
        try:
            bio.run(
                Invocation(
                    argv=["zip", "-q", "-r", zip_path, *biome_paths],
                    stdout=sys.stderr,
                    stderr=sys.stderr,
                )
            )
            _fetch_and_extract(record, bio, zip_path)
        finally:
            logger.debug("Cleaning up %s inside biome", zip_path)
            remove_biome_file(bio, zip_path)
    except (BiomeError, OSError, subprocess.CalledProcessError) as e:
        raise DownloadError(record, e) from e


def _relative_to_root(record: BiomeRecord, file: str) -> str:
    """Return file as a slash path relative to the biome root."""
    try:
        rel = os.path.relpath(os.path.abspath(file), record.root_host_dir)
    except ValueError:
        # Different drives.
        rel = os.pardir
    if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
        raise DownloadError(record, f"{file}: not inside {record.root_host_dir}")
    return rel.replace(os.sep, "/")


def _fetch_and_extract(record: BiomeRecord, bio: Biome, zip_path: str) -> None:
    fd, host_zip = tempfile.mkstemp(prefix="biome-download-", suffix=".zip")
    logger.debug("Downloading to %s on host", host_zip)
    try:
        with os.fdopen(fd, "wb") as f:
            read_file(bio, zip_path, f)
        logger.debug("Extracting to %s on host", record.root_host_dir)
        subprocess.run(
            ["unzip", "-o", "-q", host_zip],
            cwd=record.root_host_dir,
            stdout=sys.stderr,
            stderr=sys.stderr,
            check=True,
        )
    finally:
        try:
            os.remove(host_zip)
        except OSError as e:
            logger.warning("Failed to clean up %s: %s", host_zip, e)
