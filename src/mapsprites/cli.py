"""Command-line interface for mapsprites.

Built with Typer. ``mapsprites build`` creates sprite sheets for an
annotation; ``mapsprites index`` writes an HTML overview of the output
directory.
"""
import logging
from typing import Optional

import typer

from . import config
from .errors import SpriteError
from .report import write_index
from .sprites import SpriteBuilder

app = typer.Typer(no_args_is_help=True)


@app.callback()
def callback():
    """
    Pack georeferenced map thumbnails into IIIF sprite sheets.
    """


def _setup(env, verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if env != "DEFAULT":
        config.change_env(env)


@app.command()
def build(
    annotation_url: str = typer.Argument(..., help="URL of the Georeference Annotation."),
    variants: Optional[str] = typer.Argument(
        None, help="Comma-separated sprite widths (e.g. 128,256) or tile multipliers (e.g. 0.5x)."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
    output: Optional[str] = typer.Option(None, help="Output directory."),
    cache: Optional[str] = typer.Option(None, help="Cache directory."),
    base_url: Optional[str] = typer.Option(None, help="Public URL of the output directory."),
    tile_size: Optional[int] = typer.Option(None, help="IIIF tile size in pixels."),
    workers: Optional[int] = typer.Option(None, help="Concurrent downloads and tile writers."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug messages."),
):
    """Build sprite sheets, tile pyramids and annotations for each variant."""
    _setup(env, verbose)

    try:
        builder = SpriteBuilder(annotation_url, output_dir=output, cache_dir=cache,
                                base_url=base_url, tile_size=tile_size, workers=workers)
        results = builder.build(variants or config.get("default_variants"))
    except SpriteError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1)
    for result in results:
        typer.echo(f"{result.variant}: {result.width}x{result.height} -> {result.directory}")


@app.command()
def index(
    output: Optional[str] = typer.Option(None, help="Output directory to index."),
    base_url: Optional[str] = typer.Option(None, help="Public URL of the output directory."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
):
    """Write index.html listing every generated sprite sheet."""
    _setup(env, False)

    try:
        path = write_index(output, base_url=base_url)
    except SpriteError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Wrote {path}")


if __name__ == "__main__":
    app()
