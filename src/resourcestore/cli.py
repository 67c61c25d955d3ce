"""CLI for resourcestore."""

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .addressing import derive_path
from .config import load_settings
from .errors import (
    ConfigurationError,
    InvalidHashError,
    InvalidPathError,
    PublishError,
    ResourceImportError,
)
from .manager import ResourceManager
from .models import StoredObject
from .utils import humanize_size, short_hash


app = typer.Typer(help="""\
Content-addressed resource storage. Import files into a storage, publish
them to their collection's target and inspect what is stored.""")

console = Console()

ConfigOption = typer.Option(
    None, "--config", "-c",
    help="Resource settings file (default: $RESOURCESTORE_CONFIG or ./resources.yaml)",
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_manager(config: Optional[Path]) -> ResourceManager:
    """Build a manager from settings or exit with the configuration error."""
    try:
        return ResourceManager(load_settings(config))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(..., help="File to import"),
    collection: str = typer.Option("persistent", "--collection", help="Target collection"),
    config: Optional[Path] = ConfigOption,
):
    """Import a file, store it by content hash and publish it."""
    if not file.is_file():
        console.print(f"[red]✗[/red] File not found: {file}")
        raise typer.Exit(1)

    with _load_manager(config) as manager:
        try:
            obj = manager.import_resource(file, collection)
        except (ConfigurationError, ResourceImportError, PublishError) as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        uri = manager.get_public_uri(obj)

    console.print(f"[green]✓[/green] Imported {obj.display_name} ({humanize_size(obj.size_bytes)})")
    console.print(f"  sha1: {obj.content_hash}")
    console.print(f"  md5:  {obj.secondary_hash}")
    if uri:
        console.print(f"  uri:  {uri}")


@app.command("list")
def list_cmd(
    storage: str = typer.Argument(..., help="Storage name"),
    config: Optional[Path] = ConfigOption,
):
    """List all blobs in a storage."""
    with _load_manager(config) as manager:
        if storage not in manager.storages:
            console.print(f"[red]✗[/red] Unknown storage: {storage}")
            raise typer.Exit(1)
        objects = manager.storages[storage].list_objects()

    if not objects:
        console.print("[dim]No objects stored[/dim]")
        return

    table = Table(title=f"Storage {storage}")
    table.add_column("Hash", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Path", style="dim")
    for obj in objects:
        table.add_row(short_hash(obj.content_hash), humanize_size(obj.size_bytes), obj.data_uri or "")
    console.print(table)
    console.print(f"{len(objects)} object(s), {humanize_size(sum(o.size_bytes for o in objects))}")


@app.command("path")
def path_cmd(
    content_hash: str = typer.Argument(..., help="SHA-1 content hash"),
    flat: bool = typer.Option(False, "--flat", help="Do not subdivide the hash"),
):
    """Show the storage path of a content hash."""
    try:
        console.print(derive_path(content_hash.lower(), subdivide=not flat), soft_wrap=True)
    except InvalidHashError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.command("publish")
def publish_cmd(
    file: Path = typer.Argument(..., help="Static file to publish"),
    relative_path: str = typer.Argument(..., help="Path below the target's publication root"),
    target: str = typer.Option(..., "--target", "-t", help="Target name"),
    config: Optional[Path] = ConfigOption,
):
    """Publish a static file to a target under an explicit path."""
    if not file.is_file():
        console.print(f"[red]✗[/red] File not found: {file}")
        raise typer.Exit(1)

    with _load_manager(config) as manager:
        if target not in manager.targets:
            console.print(f"[red]✗[/red] Unknown target: {target}")
            raise typer.Exit(1)
        publishing_target = manager.targets[target]
        try:
            with file.open("rb") as stream:
                entry = publishing_target.publish_file(stream, relative_path)
        except PublishError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        uri = publishing_target.get_public_static_resource_uri(entry.relative_public_path)

    console.print(f"[green]✓[/green] Published {entry.relative_public_path}")
    if uri:
        console.print(f"  uri: {uri}")


@app.command("uri")
def uri_cmd(
    content_hash: str = typer.Argument(..., help="SHA-1 content hash"),
    filename: str = typer.Argument(..., help="Display name of the resource"),
    collection: str = typer.Option("persistent", "--collection", help="Resource collection"),
    config: Optional[Path] = ConfigOption,
):
    """Show the public URI of a published resource."""
    with _load_manager(config) as manager:
        try:
            obj = StoredObject(
                content_hash=content_hash.lower(),
                size_bytes=0,
                display_name=filename,
                collection_name=collection,
            )
            uri = manager.get_public_uri(obj)
        except ValidationError:
            console.print(f"[red]✗[/red] Invalid sha1 hex (must be 40 hex chars): {content_hash!r}")
            raise typer.Exit(1)
        except (ConfigurationError, InvalidPathError) as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)

    if uri is None:
        console.print("[yellow]⚠[/yellow] Target has no public base URI")
        raise typer.Exit(1)
    console.print(uri, soft_wrap=True)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
