"""CLI entry point for dicomancer."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from dicomancer import __version__
from dicomancer._console import console, err_console
from dicomancer.hierarchy import HierarchyBuilder, HierarchyNode, Level
from dicomancer.io.loader import DicomEntry, ImportResult, import_files

app = typer.Typer(
    name="dicomancer",
    help="Inspect DICOM files: hierarchy, metadata and first-frame preview.",
    add_completion=False,
)

logger = logging.getLogger("dicomancer")

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
_VIEWS = ("tree", "files")


def version_callback(value: bool):
    if value:
        console.print(f"dicomancer {__version__}")
        raise typer.Exit()


def list_codecs_callback(value: bool):
    if value:
        from dicomancer.pixels.registry import list_codecs

        console.print("\n[bold]Pixel data codecs:[/bold]\n")
        for c in list_codecs():
            status = "[green]available[/green]" if c["available"] else "[red]unavailable[/red]"
            console.print(f"  [bold]{c['name']:<10}[/bold] {c['description']}")
            console.print(f"  {'':10} Transfer syntaxes: {', '.join(c['transfer_syntaxes'])}")
            console.print(f"  {'':10} Status: {status} ({c['dependency_message']})")
            console.print()
        raise typer.Exit()


def _resolve_log_level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    name = os.environ.get("DICOMANCER_LOG", "").strip().lower()
    return _LOG_LEVELS.get(name, logging.WARNING)


@app.command()
def main(
    paths: list[Path] = typer.Argument(
        ...,
        help="DICOM files or directories (scanned recursively).",
    ),
    view: str = typer.Option(
        "tree",
        "--view",
        help="Navigation view: tree (Patient/Study/Series/Instance) or files.",
    ),
    metadata: bool = typer.Option(
        True,
        "--metadata/--no-metadata",
        help="Print the metadata table of the selected instance.",
    ),
    select: int = typer.Option(
        None,
        "--select",
        help="Instance number to inspect (default: last imported).",
    ),
    preview: Path = typer.Option(
        None,
        "--preview",
        help="Write the selected instance's first frame as PNG.",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        min=1,
        help="Parallel parse threads (default: executor sizing).",
    ),
    do_list_codecs: bool = typer.Option(
        False,
        "--list-codecs",
        callback=list_codecs_callback,
        is_eager=True,
        help="List pixel data codecs and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show debug logging.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """Inspect DICOM files: hierarchy, metadata and first-frame preview."""
    logging.basicConfig(level=_resolve_log_level(verbose), format="%(levelname)s: %(message)s")

    if view not in _VIEWS:
        err_console.print(f"[failure]Error: unknown view '{escape(view)}' (choose tree or files)[/failure]")
        raise typer.Exit(code=2)

    builder, results = import_files(paths, workers=workers)
    entries = [r.entry for r in results if r.entry is not None]

    if view == "tree":
        _print_tree(builder, entries)
        _print_failures(results)
    else:
        _print_files(results)

    if not entries:
        err_console.print("[failure]No DICOM files could be imported.[/failure]")
        raise typer.Exit(code=1)

    index = len(entries) if select is None else select
    if not 1 <= index <= len(entries):
        err_console.print(f"[failure]Error: --select must be between 1 and {len(entries)}, got {index}[/failure]")
        raise typer.Exit(code=2)
    entry = entries[index - 1]

    if metadata:
        _print_metadata(entry)
    if preview is not None:
        _write_preview(entry, preview)


def _instance_label(entry: DicomEntry, number: int) -> str:
    partial = " [partial](partial)[/partial]" if entry.dataset.is_partial else ""
    return f"[number]#{number}[/number] {escape(entry.path.name)}{partial}"


def _print_tree(builder: HierarchyBuilder, entries: list[DicomEntry]) -> None:
    """Rich tree of Patient -> Study -> Series -> Instance."""
    # The newest entry wins when one instance was imported twice.
    numbers = {id(entry.dataset): n for n, entry in enumerate(entries, 1)}
    by_dataset = {id(entry.dataset): entry for entry in entries}
    tree = Tree("[bold]DICOM hierarchy[/bold]")

    def add(parent: Tree, node: HierarchyNode) -> None:
        label = escape(node.label)
        if node.level is Level.INSTANCE and id(node.dataset) in by_dataset:
            entry = by_dataset[id(node.dataset)]
            label = f"{label}  {_instance_label(entry, numbers[id(node.dataset)])}"
        branch = parent.add(label)
        for child in node.children:
            add(branch, child)

    for root in builder.roots:
        add(tree, root)
    console.print(tree)


def _print_files(results: list[ImportResult]) -> None:
    """Files in input order; imported ones are numbered for --select."""
    number = 0
    for result in results:
        if result.entry is None:
            console.print(f"   [failure]✗ {escape(result.error)}[/failure]")
            continue
        number += 1
        console.print(f"{number:>4}. {escape(str(result.path))}")


def _print_failures(results: list[ImportResult]) -> None:
    for result in results:
        if result.error is not None:
            err_console.print(f"[failure]{escape(result.error)}[/failure]")


def _print_metadata(entry: DicomEntry) -> None:
    """Tag / VR / Alias / Value table for one instance."""
    from dicomancer.formatting import metadata_rows

    table = Table(title=f"File: {escape(str(entry.path))}")
    table.add_column("Tag", style="tag")
    table.add_column("VR", style="vr")
    table.add_column("Alias", style="alias")
    table.add_column("Value", overflow="fold")
    for row in metadata_rows(entry.dataset):
        table.add_row(row.tag, row.vr, escape(row.alias), escape(row.value))
    console.print(table)

    for issue in entry.dataset.issues:
        err_console.print(f"[issue]Warning: {escape(issue)}[/issue]")


def _write_preview(entry: DicomEntry, output: Path) -> None:
    from dicomancer.pixels.preview import render_preview

    result = render_preview(entry.dataset)
    if not result.ok:
        console.print(f"Preview: {result.status.value} ({escape(result.message)})")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    result.raster.to_image().save(output, format="PNG")
    console.print(f"Preview: {result.message} written to {escape(str(output))}")
