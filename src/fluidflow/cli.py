"""Command-line interface for FluidFlow."""

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import configure_logging, get_settings
from .geometry import Geometry, rasterize_shape
from .state import BOUNDARY_CONDITION_CONFIG, BoundaryCondition, GeometryType

console = Console()

CELL_STYLES = {
    BoundaryCondition.FLUID: ("·", "bright_black"),
    BoundaryCondition.SOLID: ("█", "white"),
    BoundaryCondition.INFLOW: ("█", "green"),
    BoundaryCondition.OUTFLOW: ("█", "red"),
    BoundaryCondition.WALL: ("█", "grey50"),
}


def render_geometry(geometry: Geometry) -> Text:
    """Draw a grid as coloured blocks, one character pair per cell."""
    text = Text()
    for row in geometry.cells:
        for condition in row:
            glyph, style = CELL_STYLES[condition]
            text.append(glyph * 2, style=style)
        text.append("\n")
    return text


@click.group()
@click.version_option(__version__)
def cli():
    """FluidFlow: control panel for PINN fluid-flow prediction."""
    pass


@cli.command()
@click.option('--host', default=None, help='Bind address (defaults to API_HOST)')
@click.option('--port', default=None, type=int, help='Port (defaults to API_PORT)')
@click.option('--reload', is_flag=True, help='Reload on code changes (development)')
def serve(host: str, port: int, reload: bool):
    """Start the control-panel API server."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(
        Panel(
            f"[bold blue]FluidFlow Control Panel[/bold blue]\n\n"
            f"[green]Listening on:[/green] http://{host}:{port}\n"
            f"[green]Prediction backend:[/green] {settings.backend_url}\n"
            f"[green]Explanation provider:[/green] {settings.explanation_provider}",
            title="Server",
            border_style="blue"
        )
    )
    uvicorn.run("fluidflow.server.main:app", host=host, port=port, reload=reload,
                log_level=settings.log_level.lower())


@cli.command()
@click.argument('geometry_type', type=click.Choice([g.value for g in GeometryType]))
@click.option('--width', default=None, type=click.IntRange(min=1), help='Grid width in cells')
@click.option('--height', default=None, type=click.IntRange(min=1), help='Grid height in cells')
@click.option('--digest', is_flag=True, help='Also print the row digest sent to the AI explainer')
def preview(geometry_type: str, width: int, height: int, digest: bool):
    """Rasterize a shape preset and draw it in the terminal."""
    settings = get_settings()
    geometry = rasterize_shape(
        GeometryType(geometry_type), width or settings.grid_width, height or settings.grid_height
    )

    console.print(Panel(render_geometry(geometry),
                        title=f"{geometry_type} ({geometry.width}x{geometry.height})",
                        border_style="blue", expand=False))

    table = Table(title="Cell counts")
    table.add_column("Boundary condition", style="cyan")
    table.add_column("Cells", justify="right")
    for condition, count in geometry.counts().items():
        table.add_row(BOUNDARY_CONDITION_CONFIG[condition].label, str(count))
    console.print(table)

    if digest:
        console.print(geometry.digest(), markup=False, highlight=False)


@cli.command()
def status():
    """Check FluidFlow dependencies, configuration and backend reachability."""
    from .prediction_client import PredictionClient

    console.print("\n[bold]🔧 FluidFlow Status Check[/bold]\n")

    console.print("[cyan]Python Dependencies:[/cyan]")
    dependencies = [
        "fastapi", "uvicorn", "pydantic", "pydantic_settings", "requests", "numpy",
        "langchain_core", "langchain_openai", "openai", "loguru", "rich", "click"
    ]
    for dep in dependencies:
        try:
            __import__(dep)
            console.print(f"  ✅ {dep}")
        except ImportError:
            console.print(f"  ❌ {dep} (missing)")

    console.print("\n[cyan]Configuration:[/cyan]")
    settings = get_settings()
    if settings.openai_api_key:
        console.print("  ✅ OpenAI API Key")
    else:
        console.print("  ❌ OpenAI API Key (not set, AI analysis disabled)")
    console.print(f"  ℹ️  Explanation provider: {settings.explanation_provider}")
    console.print(f"  ℹ️  Grid: {settings.grid_width}x{settings.grid_height}")

    console.print("\n[cyan]Prediction Backend:[/cyan]")
    if PredictionClient(settings).check_health():
        console.print(f"  ✅ {settings.backend_url}")
    else:
        console.print(f"  ❌ {settings.backend_url} (not reachable)")


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
