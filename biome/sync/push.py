"""Push — synchronize a host directory into a biome's work directory.

The bundler streams a zip archive of the changes through an in-memory pipe
to a consumer thread that writes it into the biome's home directory. Stale
paths are then removed, the archive extracted over the work directory and,
only after all of that succeeded, the new stamp table recorded.

Pushes to the same biome are serialized by the store's per-biome lock.
"""

from __future__ import annotations

import logging
import secrets
import sys
import threading
from typing import Sequence

from biome.backend.base import Biome, BiomeError, write_file
from biome.backend.models import Invocation
from biome.ignore import Pattern
from biome.paths import from_slash, join_path
from biome.state.models import BiomeRecord
from biome.state.store import BiomeStore, StoreError
from biome.sync.bundle import BundleCancelledError, BundleError, BundleOptions, bundle
from biome.sync.pipe import DEFAULT_MAX_BUFFER, Pipe
from biome.sync.tree import DirTree

logger = logging.getLogger(__name__)

CANCEL_POLL_SECONDS = 0.05
# How long a cancelled push waits for the archive writer to let go.
CANCEL_WRITER_GRACE_SECONDS = 1.0


class PushError(Exception):
    """Synchronizing a host directory into a biome failed."""

    def __init__(self, record: BiomeRecord, cause: object):
        super().__init__(f"push {record.root_host_dir} to {record.id}: {cause}")
        self.record = record
        self.cause = cause


def push_work_dir(
    store: BiomeStore,
    record: BiomeRecord,
    bio: Biome,
    *,
    global_ignore: Sequence[Pattern] = (),
    cancelled: threading.Event | None = None,
    pipe_buffer: int = DEFAULT_MAX_BUFFER,
) -> None:
    """Bring bio's work directory up to date with record.root_host_dir.

    On failure the stored stamp table is left as it was, so the next push
    resends everything that might not have arrived. Setting ``cancelled``
    aborts the push, including a transfer blocked on a slow consumer.

    Raises:
        PushError: Wrapping the first error encountered.
    """
    try:
        with store.lock_biome(record.id):
            _push(store, record, bio, global_ignore, cancelled, pipe_buffer)
    except (BiomeError, BundleError, StoreError, OSError) as e:
        raise PushError(record, e) from e


def _push(
    store: BiomeStore,
    record: BiomeRecord,
    bio: Biome,
    global_ignore: Sequence[Pattern],
    cancelled: threading.Event | None,
    pipe_buffer: int,
) -> None:
    prev_stamps = store.read_stamps(record.id)
    desc = bio.describe()
    zip_path = join_path(desc, bio.dirs().home, secrets.token_hex(8) + ".zip")

    pipe = Pipe(pipe_buffer)
    write_errors: list[BaseException] = []

    def consume() -> None:
        try:
            write_file(bio, zip_path, pipe.reader)
        except Exception as e:
            write_errors.append(e)
            pipe.reader.close(e)
        else:
            pipe.reader.close()

    consumer = threading.Thread(target=consume, name="biome-push-writer", daemon=True)
    consumer.start()
    watcher = _CancelWatcher(cancelled, pipe, zip_path) if cancelled is not None else None
    try:
        try:
            result = bundle(
                pipe.writer,
                DirTree(record.root_host_dir),
                BundleOptions(
                    global_ignore=global_ignore,
                    prev_stamps=prev_stamps,
                    link_root=record.root_host_dir,
                    cancelled=cancelled,
                ),
            )
        except BaseException as e:
            pipe.writer.close(e)
            if cancelled is not None and cancelled.is_set():
                consumer.join(CANCEL_WRITER_GRACE_SECONDS)
            else:
                consumer.join()
            raise
        pipe.writer.close()
        consumer.join()
        if write_errors:
            raise write_errors[0]
        if cancelled is not None and cancelled.is_set():
            raise BundleCancelledError(zip_path, "cancelled")
        logger.debug(
            "Bundled %d entries, %d to remove", len(result.stamps), len(result.to_remove)
        )

        if result.to_remove:
            rm_args = ["rm", "-r", "-f", "--"]
            rm_args.extend(from_slash(desc, path) for path in result.to_remove)
            bio.run(Invocation(argv=rm_args, stdout=sys.stderr, stderr=sys.stderr))

        if result.entry_count:
            bio.run(
                Invocation(
                    argv=["unzip", "-o", "-q", zip_path], stdout=sys.stderr, stderr=sys.stderr
                )
            )
        else:
            # unzip rejects an archive with no entries.
            logger.debug("Nothing to extract")
        store.replace_stamps(record.id, result.stamps)
    finally:
        if watcher is not None:
            watcher.stop()
        remove_biome_file(bio, zip_path)


def remove_biome_file(bio: Biome, path: str) -> None:
    """Delete a temporary file inside the biome, warning if that fails."""
    try:
        bio.run(Invocation(argv=["rm", "-f", "--", path], stdout=sys.stderr, stderr=sys.stderr))
    except BiomeError as e:
        logger.warning("Failed to clean up %s in biome: %s", path, e)


class _CancelWatcher(threading.Thread):
    """Cancels the pipe once the caller's event is set, waking both ends."""

    def __init__(self, cancelled: threading.Event, pipe: Pipe, zip_path: str):
        super().__init__(name="biome-push-cancel", daemon=True)
        self.cancelled = cancelled
        self.pipe = pipe
        self.zip_path = zip_path
        self.done = threading.Event()
        self.start()

    def run(self) -> None:
        while not self.done.is_set():
            if self.cancelled.wait(CANCEL_POLL_SECONDS):
                logger.debug("Push cancelled; closing the archive pipe")
                self.pipe.cancel(BundleCancelledError(self.zip_path, "cancelled"))
                return

    def stop(self) -> None:
        self.done.set()
        self.join()
