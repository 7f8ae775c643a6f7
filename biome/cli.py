"""biome CLI — create biomes, push directories into them and run programs there."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from biome import __version__
from biome.backend import BiomeError, Invocation, RunError
from biome.ignore import governing_match, load_global_ignore
from biome.paths import abs_path, from_slash
from biome.state import BiomeStore, StoreError
from biome.sync.bundle import BundleError, read_local_ignore
from biome.sync.download import DownloadError, download_files
from biome.sync.push import PushError, push_work_dir
from biome.sync.tree import DirTree
from biome.utils.config import ConfigError, Settings, config_search_paths
from biome.utils.logging import setup_logging

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)


@contextmanager
def _reported_errors():
    try:
        yield
    except (BiomeError, BundleError, ConfigError, DownloadError, PushError, StoreError) as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Log every synchronized and ignored path")
@click.pass_context
def main(ctx: click.Context, debug: bool):
    """biome — run programs against a synchronized copy of a directory.

    A biome is a private work directory and home directory. Each push
    copies only what changed in the host directory since the last push.
    """
    with _reported_errors():
        settings = Settings.load()
    setup_logging(debug or settings.debug)
    ctx.obj = settings


def _global_ignore(settings: Settings):
    return load_global_ignore(config_search_paths(), settings.ignore)


# ── Create ───────────────────────────────────────────────────────────


@main.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
def create(directory: str):
    """Create a biome for DIRECTORY (the current directory by default)."""
    with _reported_errors():
        record = BiomeStore().create(directory)
    console.print(record.id)


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@click.option("--all", "-a", "show_all", is_flag=True, help="Show biomes in all directories")
@click.option("--quiet", "-q", is_flag=True, help="Only show IDs")
def list_biomes(show_all: bool, quiet: bool):
    """List biomes whose directory contains the current directory."""
    with _reported_errors():
        records = BiomeStore().list_all()
    if not show_all:
        cwd = os.getcwd()
        records = [r for r in records if r.contains(cwd)]

    if quiet:
        for record in records:
            console.print(record.id)
        return

    if not records:
        console.print("[yellow]No biomes found.[/]")
        return

    table = Table(title=f"Biomes ({len(records)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Directory")
    table.add_column("Created", style="dim")
    for record in records:
        table.add_row(record.id, escape(record.root_host_dir), record.created_at[:19])
    console.print(table)


# ── Destroy ──────────────────────────────────────────────────────────


@main.command()
@click.option("--biome", "-b", "biome_id", default="", help="Biome to destroy")
def destroy(biome_id: str):
    """Delete a biome along with its work and home directories."""
    with _reported_errors():
        store = BiomeStore()
        record = store.find(biome_id, os.getcwd())
        store.destroy(record.id)
    console.print(f"[green]Destroyed[/] {record.id}")


# ── Push ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--biome", "-b", "biome_id", default="", help="Biome to push into")
@click.pass_obj
def push(settings: Settings, biome_id: str):
    """Copy changes in the host directory into the biome."""
    with _reported_errors():
        store = BiomeStore()
        record = store.find(biome_id, os.getcwd())
        with store.open_biome(record) as bio:
            push_work_dir(
                store,
                record,
                bio,
                global_ignore=_global_ignore(settings),
                pipe_buffer=settings.pipe_buffer,
            )
    console.print(f"[green]Pushed[/] {escape(record.root_host_dir)} to {record.id}")


# ── Run ──────────────────────────────────────────────────────────────


@main.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.option("--biome", "-b", "biome_id", default="", help="Biome to run inside")
@click.argument("argv", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def run(settings: Settings, biome_id: str, argv: tuple[str, ...]):
    """Push the host directory, then run PROGRAM inside the biome.

    The program starts in the biome directory matching the current directory
    and the command exits with the program's exit status.
    """
    cwd = os.getcwd()
    with _reported_errors():
        store = BiomeStore()
        record = store.find(biome_id, cwd)
        with store.open_biome(record) as bio:
            push_work_dir(
                store,
                record,
                bio,
                global_ignore=_global_ignore(settings),
                pipe_buffer=settings.pipe_buffer,
            )
            rel = ""
            if record.contains(cwd):
                rel = os.path.relpath(cwd, record.root_host_dir).replace(os.sep, "/")
                if rel == ".":
                    rel = ""
            work_dir = abs_path(bio, from_slash(bio.describe(), rel))
            try:
                bio.run(
                    Invocation(
                        argv=list(argv),
                        dir=work_dir,
                        stdin=sys.stdin,
                        stdout=sys.stdout,
                        stderr=sys.stderr,
                        interactive=sys.stdin.isatty(),
                    )
                )
            except RunError as e:
                sys.exit(e.exit_code if e.exit_code > 0 else 128 - e.exit_code)


# ── Download ─────────────────────────────────────────────────────────


@main.command()
@click.option("--biome", "-b", "biome_id", default="", help="Biome to download from")
@click.argument("files", nargs=-1, required=True, type=click.Path())
def download(biome_id: str, files: tuple[str, ...]):
    """Copy FILES from the biome back into the host directory.

    Each file is a host path inside the biome's directory. Directories are
    copied recursively and existing host files are overwritten.
    """
    with _reported_errors():
        store = BiomeStore()
        record = store.find(biome_id, os.getcwd())
        with store.open_biome(record) as bio, store.lock_biome(record.id):
            download_files(record, bio, files)
    console.print(f"[green]Downloaded[/] {len(files)} path(s) from {record.id}")


# ── Check ignore ─────────────────────────────────────────────────────


@main.command(name="check-ignore")
@click.option(
    "--dir",
    "-C",
    "directory",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Host directory the paths are relative to",
)
@click.argument("paths", nargs=-1, required=True)
@click.pass_obj
def check_ignore(settings: Settings, directory: str, paths: tuple[str, ...]):
    """Show which ignore rule, if any, decides whether each PATH is pushed.

    PATHS are slash-separated and relative to the directory. A trailing
    slash, or an existing directory, marks a path as a directory.
    """
    with _reported_errors():
        patterns = _global_ignore(settings)
        patterns.extend(read_local_ignore(DirTree(directory)))

    for path in paths:
        is_dir = path.endswith("/") or os.path.isdir(os.path.join(directory, path))
        rel = path.rstrip("/")
        pat = governing_match(patterns, rel, is_dir)
        if pat is None:
            console.print(f"{escape(path)}: [green]included[/]")
        elif pat.negate:
            console.print(f"{escape(path)}: [green]included[/] by {escape(str(pat))}")
        else:
            console.print(f"{escape(path)}: [yellow]ignored[/] by {escape(str(pat))}")


if __name__ == "__main__":
    main()
