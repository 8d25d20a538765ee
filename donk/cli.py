"""Command-line interface for the Donk server."""

import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import get_config
from .errors import DonkError
from .models.grid import TileLocation
from .services.blob_store import BlobStore
from .services.instance_service import InstanceService
from .services.session_service import SessionService, normalize_edit_payload

console = Console()
logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Route the donk loggers through a single rich handler."""
    root = logging.getLogger("donk")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if root.handlers:
        return
    handler = RichHandler(console=console, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.propagate = False


def _instance_service(data_dir: Optional[str]) -> InstanceService:
    config = get_config()
    if data_dir:
        config = config.model_copy(update={"data_dir": Path(data_dir)})
    config.apply_image_limits()
    return InstanceService(BlobStore(config.data_dir), config)


def _fail(error: DonkError) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise SystemExit(1)


data_dir_option = click.option(
    "--data-dir", "-d", type=click.Path(file_okay=False), help="Data directory (default: $DONK_DATA_DIR or ./data)"
)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Donk - collaborative tiled canvas server."""
    configure_logging(verbose)


@main.command()
@click.argument("source_image", type=click.Path(exists=True, dir_okay=False))
@click.option("--steps-x", "-x", type=int, help="Grid columns (default 6)")
@click.option("--steps-y", "-y", type=int, help="Grid rows (default 6)")
@data_dir_option
def new(source_image: str, steps_x: Optional[int], steps_y: Optional[int], data_dir: Optional[str]):
    """Create an instance from SOURCE_IMAGE and build its composite."""
    service = _instance_service(data_dir)
    try:
        instance = service.create(source_image, steps_x, steps_y)
        service.rebuild_composite(instance)
    except DonkError as e:
        _fail(e)

    console.print(f"[green]Created instance:[/green] {instance.id}")
    console.print(
        f"[bold]Grid:[/bold] {instance.step_count_x} x {instance.step_count_y} "
        f"cells of {instance.step_size_x} x {instance.step_size_y} px"
    )


@main.command("list")
@data_dir_option
def list_instances(data_dir: Optional[str]):
    """List stored instances."""
    service = _instance_service(data_dir)
    ids = service.list_instances()
    if not ids:
        console.print("[yellow]No instances found[/yellow]")
        return

    table = Table(title=f"Instances ({len(ids)})")
    table.add_column("ID", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("Grid")
    table.add_column("Tiles", justify="right")

    for instance_id in ids:
        try:
            instance = service.open(instance_id)
        except DonkError as e:
            logger.warning("Skipping instance %s: %s", instance_id, e)
            table.add_row(str(instance_id), "[red]unreadable[/red]", "-", "-")
            continue
        overrides = len(service.tiles.locations(instance.id))
        table.add_row(
            str(instance.id),
            instance.source_image_path,
            f"{instance.step_count_x} x {instance.step_count_y}",
            f"{overrides}/{instance.step_count_x * instance.step_count_y}",
        )

    console.print(table)


@main.command()
@click.argument("instance_id")
@data_dir_option
def info(instance_id: str, data_dir: Optional[str]):
    """Show information about an instance."""
    service = _instance_service(data_dir)
    try:
        instance = service.open(instance_id)
    except DonkError as e:
        _fail(e)

    grid = instance.grid
    table = Table(title=f"Instance: {instance.id}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Source Image", instance.source_image_path)
    table.add_row("Source Size", f"{grid.width} x {grid.height} px")
    table.add_row("Grid", f"{grid.step_count_x} x {grid.step_count_y} = {grid.cell_count} tiles")
    table.add_row("Cell Size", f"{grid.step_size_x} x {grid.step_size_y} px")
    if grid.has_remainder:
        table.add_row(
            "Uncovered Strip",
            f"{grid.width - grid.covered_width} px right, {grid.height - grid.covered_height} px bottom",
        )
    console.print(table)

    status = dict(service.tile_status(instance))
    console.print("\n[bold]Tile overrides[/bold] ([green]#[/green] = override, [dim].[/dim] = source)")
    for y in range(grid.step_count_y):
        row = "".join(
            "[green]#[/green]" if status[TileLocation(x=x, y=y)] else "[dim].[/dim]"
            for x in range(grid.step_count_x)
        )
        console.print(f"  {row}")


@main.command()
@click.argument("instance_id")
@data_dir_option
def rebuild(instance_id: str, data_dir: Optional[str]):
    """Rebuild an instance's composite from its source image and tiles."""
    service = _instance_service(data_dir)
    try:
        instance = service.open(instance_id)
        service.rebuild_composite(instance)
    except DonkError as e:
        _fail(e)
    console.print(f"[green]Rebuilt composite for[/green] {instance.id}")


@main.command()
@click.argument("instance_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False), required=True, help="Output JPEG path")
@data_dir_option
def export(instance_id: str, output: str, data_dir: Optional[str]):
    """Write an instance's composite to a file."""
    service = _instance_service(data_dir)
    try:
        instance = service.open(instance_id)
        data = service.get_composite(instance)
    except DonkError as e:
        _fail(e)

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    console.print(f"[green]Saved:[/green] {output_path}")


@main.command()
@click.argument("instance_id")
@click.option("--tile", "-t", required=True, help="Tile to start a session on, format 'X,Y' (e.g. '2,1')")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Also write the background image here")
@data_dir_option
def session(instance_id: str, tile: str, output: Optional[str], data_dir: Optional[str]):
    """Start an editing session on a tile."""
    location = TileLocation.from_key(tile.strip())
    if location is None:
        console.print(f"[red]Error:[/red] Invalid tile '{tile}', expected 'X,Y'")
        raise SystemExit(1)

    instances = _instance_service(data_dir)
    sessions = SessionService(instances)
    try:
        instance = instances.open(instance_id)
        new_session = sessions.create(instance, location)
        background = sessions.read_background(new_session)
    except DonkError as e:
        _fail(e)

    console.print(f"[green]Created session:[/green] {new_session.id} for tile {location}")
    if output:
        Path(output).write_bytes(background)
        console.print(f"[green]Saved background:[/green] {output}")


@main.command()
@click.argument("instance_id")
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--tile", "-t", required=True, help="Tile to replace, format 'X,Y' (e.g. '2,1')")
@data_dir_option
def edit(instance_id: str, image_path: str, tile: str, data_dir: Optional[str]):
    """Replace a tile with IMAGE_PATH and rebuild the composite."""
    location = TileLocation.from_key(tile.strip())
    if location is None:
        console.print(f"[red]Error:[/red] Invalid tile '{tile}', expected 'X,Y'")
        raise SystemExit(1)

    service = _instance_service(data_dir)
    try:
        instance = service.open(instance_id)
        image_bytes = normalize_edit_payload(Path(image_path).read_bytes(), service.config.background_quality)
        service.apply_tile_edit(instance, location, image_bytes)
    except DonkError as e:
        _fail(e)
    console.print(f"[green]Updated tile[/green] {location} of {instance.id}")


@main.command()
@click.option("--host", help="Bind address (default: $DONK_HOST or 0.0.0.0)")
@click.option("--port", type=int, help="Port (default: $DONK_PORT or 8000)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Start serving API requests."""
    import uvicorn

    config = get_config()
    console.print("[bold]Starting web server[/bold]")
    uvicorn.run(
        "donk.api.main:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
