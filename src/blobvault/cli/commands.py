"""Blob commands for the blobvault CLI.

Usage:
    blobvault --root /srv/blobs ls /reports --recursive
    blobvault put /reports/q1.csv q1.csv
    cat q1.csv | blobvault put /reports/q1.csv --append
    blobvault cat /reports/q1.csv
    blobvault stat /reports/q1.csv --format json
    blobvault set-attr /reports/q1.csv owner=finance
    blobvault rm /reports/q1.csv
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer

from blobvault.observability.logging import LogContext
from blobvault.storage.base import Blob, BlobStorage, ListOptions


def _storage(ctx: typer.Context) -> BlobStorage:
    storage: BlobStorage = ctx.obj["storage"]
    return storage


def _fail(message: str, code: int = 2) -> typer.Exit:
    from rich.console import Console

    Console(stderr=True).print(f"[red]Error:[/red] {message}")
    return typer.Exit(code=code)


def _blob_to_dict(blob: Blob) -> dict[str, Any]:
    return {
        "path": blob.full_path,
        "kind": blob.kind.value,
        "size": blob.size,
        "md5": blob.md5,
        "last_modification_time": (
            blob.last_modification_time.isoformat() if blob.last_modification_time else None
        ),
        "metadata": blob.metadata,
    }


def list_blobs(
    ctx: typer.Context,
    folder: str | None = typer.Argument(None, help="Folder to list (default: root)"),
    prefix: str | None = typer.Option(None, "--prefix", "-p", help="Leaf name prefix"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include nested entries"),
    max_results: int | None = typer.Option(None, "--max", "-n", help="Maximum entries"),
    attrs: bool = typer.Option(False, "--attrs", "-a", help="Include size, hash and attributes"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text, json"),
) -> None:
    """List blobs and folders."""
    options = ListOptions(
        folder_path=folder,
        file_prefix=prefix,
        recurse=recursive,
        max_results=max_results,
        include_attributes=attrs,
    )
    try:
        with LogContext(operation="ls", blob_path=folder or "/"):
            blobs = asyncio.run(_storage(ctx).list(options))
    except ValueError as e:
        raise _fail(str(e)) from e

    if output_format == "json":
        typer.echo(json.dumps([_blob_to_dict(blob) for blob in blobs], indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"Contents of {folder or '/'}")
    table.add_column("Kind")
    table.add_column("Path")
    if attrs:
        table.add_column("Size", justify="right")
        table.add_column("MD5")
    for blob in blobs:
        row = [blob.kind.value, blob.full_path]
        if attrs:
            row += ["" if blob.size is None else str(blob.size), blob.md5 or ""]
        table.add_row(*row)
    Console().print(table)


def cat_blob(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Blob path"),
) -> None:
    """Write blob content to stdout."""
    try:
        with LogContext(operation="cat", blob_path=path):
            content = asyncio.run(_storage(ctx).read_bytes(path))
    except ValueError as e:
        raise _fail(str(e)) from e

    if content is None:
        raise _fail(f"blob not found: {path}", code=1)
    typer.echo(content, nl=False)


def put_blob(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Blob path"),
    source: Path | None = typer.Argument(None, help="Local file (default: stdin)"),
    append: bool = typer.Option(False, "--append", help="Append instead of overwriting"),
) -> None:
    """Upload a local file, or stdin, into a blob."""
    try:
        with LogContext(operation="put", blob_path=path):
            if source is None:
                asyncio.run(_storage(ctx).write(path, sys.stdin.buffer, append=append))
            else:
                with source.open("rb") as f:
                    asyncio.run(_storage(ctx).write(path, f, append=append))
    except FileNotFoundError as e:
        raise _fail(f"source file not found: {source}", code=1) from e
    except ValueError as e:
        raise _fail(str(e)) from e


def remove_blobs(
    ctx: typer.Context,
    paths: list[str] = typer.Argument(..., help="Blob or folder paths"),
) -> None:
    """Delete blobs. Folders are deleted with everything below them."""
    try:
        with LogContext(operation="rm"):
            asyncio.run(_storage(ctx).delete(paths))
    except ValueError as e:
        raise _fail(str(e)) from e


def blobs_exist(
    ctx: typer.Context,
    paths: list[str] = typer.Argument(..., help="Blob paths"),
) -> None:
    """Report whether each blob exists. Exits 1 if any is missing."""
    try:
        with LogContext(operation="exists"):
            found = asyncio.run(_storage(ctx).exists(paths))
    except ValueError as e:
        raise _fail(str(e)) from e

    for path, exists in zip(paths, found):
        typer.echo(f"{path}\t{'yes' if exists else 'no'}")
    if not all(found):
        raise typer.Exit(code=1)


def stat_blob(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Blob path"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text, json"),
) -> None:
    """Show size, hash, timestamp and attributes of a blob."""
    try:
        with LogContext(operation="stat", blob_path=path):
            blob = asyncio.run(_storage(ctx).get_blob(path))
    except ValueError as e:
        raise _fail(str(e)) from e

    if blob is None:
        raise _fail(f"blob not found: {path}", code=1)

    data = _blob_to_dict(blob)
    if output_format == "json":
        typer.echo(json.dumps(data, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=blob.full_path, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key in ("size", "md5", "last_modification_time"):
        table.add_row(key, str(data[key]))
    for key, value in sorted(blob.metadata.items()):
        table.add_row(f"attr:{key}", value)
    Console().print(table)


def set_attributes(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Blob path"),
    pairs: list[str] = typer.Argument(..., help="Attributes as KEY=VALUE"),
) -> None:
    """Merge attributes into an existing blob."""
    updates: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise _fail(f"expected KEY=VALUE, got {pair!r}")
        updates[key] = value

    storage = _storage(ctx)

    async def _apply() -> bool:
        blob = await storage.get_blob(path)
        if blob is None:
            return False
        blob.metadata.update(updates)
        await storage.set_blobs([blob])
        return True

    try:
        with LogContext(operation="set-attr", blob_path=path):
            applied = asyncio.run(_apply())
    except ValueError as e:
        raise _fail(str(e)) from e

    if not applied:
        raise _fail(f"blob not found: {path}", code=1)
