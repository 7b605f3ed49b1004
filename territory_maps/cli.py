"""Command-line interface for territory image generation."""

from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import get_config
from .exceptions import TerritoryImageError
from .models.territory import CropHint, GenerationOptions, Territory
from .services.territory_image_service import TerritoryImageService
from .services.throttle_service import RequestThrottler
from .utils.image_utils import data_url_to_png, parse_color, to_data_url

console = Console()


def load_territories(path: Path) -> list[Territory]:
    """Load territories from a YAML or JSON file.

    The file holds either a single territory mapping or a mapping with a
    ``territories`` list.
    """
    with open(path) as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} does not contain a territory mapping")

    if "territories" in data:
        return [Territory.model_validate(item) for item in data["territories"]]
    return [Territory.model_validate(data)]


def load_territory(path: Path) -> Territory:
    territories = load_territories(path)
    if len(territories) != 1:
        raise click.BadParameter(f"{path} holds {len(territories)} territories, expected one")
    return territories[0]


def build_service() -> TerritoryImageService:
    """Create a service with a throttler owned by this invocation."""
    config = get_config()
    return TerritoryImageService(
        config=config.to_generation_config(),
        throttler=RequestThrottler(config.min_request_spacing_ms / 1000),
    )


def write_data_url(payload: str, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data_url_to_png(payload))
    return path


def _output_dir(output: Optional[str]) -> Path:
    return Path(output) if output else get_config().output_dir


def _options(contour_color: Optional[str], contour_width: Optional[int]) -> GenerationOptions:
    return GenerationOptions(contour_color=contour_color, contour_width=contour_width)


def _validate_color(ctx, param, value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        parse_color(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    return value


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise SystemExit(1)


contour_options = [
    click.option("--contour-color", callback=_validate_color, help="Contour color (CSS color)"),
    click.option("--contour-width", type=click.IntRange(1, 50), help="Contour width in pixels"),
]


def with_contour_options(func):
    for option in reversed(contour_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
def main():
    """Territory Maps - Print-ready territory images from WMS basemaps."""
    pass


@main.command()
@click.argument("territory_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@with_contour_options
def standard(
    territory_file: str,
    output: Optional[str],
    contour_color: Optional[str],
    contour_width: Optional[int],
):
    """Generate the rotated, tightly cropped image of a territory."""
    territory = load_territory(Path(territory_file))
    output_dir = _output_dir(output)

    service = build_service()
    try:
        with console.status(f"Generating standard image for territory {territory.num}..."):
            result = service.generate_standard(territory, _options(contour_color, contour_width))
    except TerritoryImageError as e:
        _fail(e)
    finally:
        service.close()

    image_path = write_data_url(result.image, output_dir / f"{territory.num}_standard.png")
    miniature_path = write_data_url(result.miniature, output_dir / f"{territory.num}_miniature.png")

    console.print(f"[green]Saved:[/green] {image_path}")
    console.print(f"[green]Saved:[/green] {miniature_path}")
    console.print(f"[bold]Rotation:[/bold] {result.discovered_rotation:.6f} rad")


@main.command()
@click.argument("territory_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@with_contour_options
def large(
    territory_file: str,
    output: Optional[str],
    contour_color: Optional[str],
    contour_width: Optional[int],
):
    """Generate the wide, north-up context image of a territory."""
    territory = load_territory(Path(territory_file))
    output_dir = _output_dir(output)

    service = build_service()
    try:
        with console.status(f"Generating large image for territory {territory.num}..."):
            result = service.generate_large(territory, _options(contour_color, contour_width))
    except TerritoryImageError as e:
        _fail(e)
    finally:
        service.close()

    image_path = write_data_url(result.image, output_dir / f"{territory.num}_large.png")
    console.print(f"[green]Saved:[/green] {image_path}")
    console.print(f"[bold]Size:[/bold] {result.width} x {result.height} px")
    console.print(f"[bold]Bbox:[/bold] {', '.join(f'{v:.6f}' for v in result.bbox)}")


@main.command()
@click.argument("territory_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--bbox",
    type=float,
    nargs=4,
    help="min_lon min_lat max_lon max_lat (defaults to the territory's currentBboxLarge)",
)
@click.option("--crop-width", type=float, help="Width of the selection on the large image")
@click.option("--crop-height", type=float, help="Height of the selection on the large image")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@with_contour_options
def crop(
    territory_file: str,
    bbox: Optional[tuple[float, float, float, float]],
    crop_width: Optional[float],
    crop_height: Optional[float],
    output: Optional[str],
    contour_color: Optional[str],
    contour_width: Optional[int],
):
    """Generate a large image re-cropped to a custom bbox."""
    territory = load_territory(Path(territory_file))
    output_dir = _output_dir(output)

    bbox = bbox or territory.current_bbox_large
    if not bbox:
        raise click.UsageError("No --bbox given and the territory has no currentBboxLarge")

    crop_hint = None
    if crop_width is not None and crop_height is not None:
        crop_hint = CropHint(
            x=0,
            y=0,
            width=crop_width,
            height=crop_height,
            image_width=crop_width,
            image_height=crop_height,
        )

    service = build_service()
    try:
        with console.status(f"Generating re-cropped image for territory {territory.num}..."):
            result = service.generate_large_with_custom_bbox(
                territory,
                tuple(bbox),
                _options(contour_color, contour_width),
                crop_hint,
            )
    except (TerritoryImageError, ValueError) as e:
        _fail(e)
    finally:
        service.close()

    image_path = write_data_url(result.image, output_dir / f"{territory.num}_crop.png")
    console.print(f"[green]Saved:[/green] {image_path}")
    console.print(f"[bold]Size:[/bold] {result.width} x {result.height} px")


@main.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(), help="Output file (default: <name>_miniature.png)")
def thumbnail(image_path: str, output: Optional[str]):
    """Create the miniature of an existing standard image."""
    source = Path(image_path)
    output_path = Path(output) if output else source.with_name(f"{source.stem}_miniature.png")

    service = build_service()
    try:
        miniature = service.generate_thumbnail_from_image(to_data_url(source.read_bytes()))
    except TerritoryImageError as e:
        _fail(e)
    finally:
        service.close()

    write_data_url(miniature, output_path)
    width, height = service.thumbnail_size
    console.print(f"[green]Saved:[/green] {output_path} ({width} x {height} px)")


@main.command()
@click.argument("territories_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.option("--workers", "-w", type=click.IntRange(1, 16), default=4, help="Concurrent generations")
@with_contour_options
def batch(
    territories_file: str,
    output: Optional[str],
    workers: int,
    contour_color: Optional[str],
    contour_width: Optional[int],
):
    """Generate standard images for every territory in a file."""
    territories = load_territories(Path(territories_file))
    output_dir = _output_dir(output)

    console.print(f"[bold]Territories:[/bold] {len(territories)}")

    service = build_service()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Generating...", total=len(territories))

            def on_progress(completed: int, total: int):
                progress.update(task, completed=completed, total=total)

            report = service.generate_batch(
                territories,
                _options(contour_color, contour_width),
                max_workers=workers,
                progress_callback=on_progress,
            )
    finally:
        service.close()

    table = Table(title="Batch results")
    table.add_column("Territory", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    for item in report.items:
        if item.succeeded:
            path = write_data_url(item.result.image, output_dir / f"{item.num}_standard.png")
            write_data_url(item.result.miniature, output_dir / f"{item.num}_miniature.png")
            table.add_row(item.num, "[green]ok[/green]", str(path))
        elif item.skipped:
            table.add_row(item.num, "[yellow]skipped[/yellow]", "")
        else:
            table.add_row(item.num, "[red]failed[/red]", item.error or "")

    console.print(table)
    if report.failed:
        raise SystemExit(1)


@main.command()
def info():
    """Show the active generation settings."""
    config = get_config()
    dims = config.to_generation_config().dimensions()

    table = Table(title="Territory Maps configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Print density", f"{config.ppp} ppp")
    table.add_row("Standard image", f"{dims.final_width} x {dims.final_height} px")
    table.add_row("Standard raw raster", f"{dims.raw_size} px")
    table.add_row("Large image", f"{dims.large_final_width} x {dims.large_final_height} px")
    table.add_row("Large raw raster", f"{dims.large_raw_size} px")
    table.add_row("Large factor", str(config.large_factor))
    table.add_row("WMS endpoint", config.wms_url)
    table.add_row("WMS layer", config.wms_layer)
    table.add_row("WMS CRS", config.wms_crs)
    table.add_row("Retries", f"{config.network_retries} x {config.network_delay_ms} ms")
    table.add_row("Request spacing", f"{config.min_request_spacing_ms} ms")
    table.add_row("Contour", f"{config.contour_color}, {config.contour_width} px")
    table.add_row("Output directory", str(config.output_dir))

    console.print(table)


if __name__ == "__main__":
    main()
