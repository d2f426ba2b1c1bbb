"""CLI commands for blobvault.

Provides command-line access to a disk blob store using Typer:
- blobvault ls: List blobs and folders
- blobvault put / cat: Write and read blob content
- blobvault rm / exists: Delete blobs and check for them
- blobvault stat / set-attr: Inspect and edit blob attributes

Usage:
    blobvault --help
    blobvault --root ./data ls --recursive
"""

from pathlib import Path

import typer

from blobvault.cli.commands import (
    blobs_exist,
    cat_blob,
    list_blobs,
    put_blob,
    remove_blobs,
    set_attributes,
    stat_blob,
)
from blobvault.config import settings
from blobvault.observability.logging import configure_logging
from blobvault.storage.factory import create_blob_storage

# Main CLI application
app = typer.Typer(
    name="blobvault",
    help="blobvault: hierarchical blob storage over a local directory",
    no_args_is_help=True,
)

app.command("ls")(list_blobs)
app.command("cat")(cat_blob)
app.command("put")(put_blob)
app.command("rm")(remove_blobs)
app.command("exists")(blobs_exist)
app.command("stat")(stat_blob)
app.command("set-attr")(set_attributes)


@app.callback()
def callback(
    ctx: typer.Context,
    root: Path = typer.Option(
        Path(settings.blob_storage_path),
        "--root",
        "-R",
        help="Root directory of the blob store",
    ),
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        help="Log level (DEBUG, INFO, ...)",
    ),
) -> None:
    """blobvault: hierarchical blob storage over a local directory."""
    configure_logging(json_format=settings.log_json, level=log_level)
    ctx.obj = {
        "storage": create_blob_storage("disk", root, chunk_size=settings.blob_chunk_size),
    }


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
