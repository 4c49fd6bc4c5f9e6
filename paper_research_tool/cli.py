import json
from typing import Optional

import anyio
import click
import uvicorn
from pydantic import ValidationError

from paper_research_tool.client.smart import TransportFactory
from paper_research_tool.config import get_settings
from paper_research_tool.favorites import FavoritesService
from paper_research_tool.models import (
    ConnectionMode,
    FavoritePaper,
    OperationResult,
    PaperSummary,
)
from paper_research_tool.observability import get_uvicorn_logging_config, setup_logging
from paper_research_tool.proxy_status import ProxyAvailabilityGate
from paper_research_tool.storage import LocalStore
from paper_research_tool.sync import ConfigService

from .app import get_app


@click.command()
@click.option(
    "--host", "-h", default="127.0.0.1", show_default=True, help="Server host"
)
@click.option(
    "--port", "-p", type=int, default=8000, show_default=True, help="Server port"
)
@click.option(
    "--log-level",
    "-l",
    default="info",
    show_default=True,
    type=click.Choice(["critical", "error", "warning", "info", "debug", "trace"]),
    help="Logging level",
)
def run(host: str, port: int, log_level: str):
    """
    Run the relay server.

    \b
    The relay serves:
      POST /api/webdav         forward a WebDAV operation (ENABLE_WEBDAV_PROXY=true)
      POST /api/webdav/detect  probe direct and relay modes for a config
      GET  /api/proxy-status   report which relays are enabled

    \b
    Examples:
      $ ENABLE_WEBDAV_PROXY=true paper-research-tool run --host 0.0.0.0
    """
    settings = get_settings()
    app = get_app(settings)

    uvicorn_log_config = get_uvicorn_logging_config(
        log_format=settings.log_format,
        log_level=settings.log_level,
    )

    uvicorn.run(
        app=app,
        host=host,
        port=port,
        log_level=log_level,
        log_config=uvicorn_log_config,
    )


def _store(database_path: Optional[str], settings) -> LocalStore:
    setup_logging(log_format=settings.log_format, log_level=settings.log_level)
    return LocalStore(database_path) if database_path else LocalStore.from_settings(settings)


def _service(database_path: Optional[str]) -> ConfigService:
    settings = get_settings()
    return ConfigService(
        _store(database_path, settings),
        factory=TransportFactory.from_settings(settings),
        gate=ProxyAvailabilityGate.from_settings(settings),
    )


def _echo_result(result: OperationResult) -> None:
    if result.success:
        click.echo(click.style(f"✓ {result.message}", fg="green"))
    elif result.is_warning:
        click.echo(click.style(f"⚠ {result.message}", fg="yellow"), err=True)
    else:
        click.echo(click.style(f"✗ {result.message}", fg="red"), err=True)

    if result.details:
        click.echo(result.details, err=not result.success)

    if not result.success:
        raise click.ClickException(result.message)


database_option = click.option(
    "--database-path",
    "-d",
    envvar="STATE_DB",
    default=None,
    help="Path to the local state database (can also use STATE_DB env var)",
)


@click.group()
def config():
    """Export, import and back up the application configuration."""
    pass


@config.command("export")
@database_option
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), help="Write to a file instead of stdout"
)
def export_cmd(database_path: Optional[str], output: Optional[str]):
    """Export the full configuration document as JSON."""
    service = _service(database_path)
    document = anyio.run(service.export_json)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(document)
        click.echo(click.style(f"✓ Configuration exported to {output}", fg="green"))
    else:
        click.echo(document)


@config.command("import")
@database_option
@click.argument("file", type=click.File("r", encoding="utf-8"))
def import_cmd(database_path: Optional[str], file):
    """Import a configuration document from FILE (use - for stdin)."""
    service = _service(database_path)
    _echo_result(anyio.run(service.import_config, file.read()))


@config.command()
@database_option
def sync(database_path: Optional[str]):
    """Upload today's backup to the WebDAV server."""
    service = _service(database_path)
    _echo_result(anyio.run(service.sync_to_remote))


@config.command()
@database_option
def restore(database_path: Optional[str]):
    """Restore the newest backup from the WebDAV server."""
    service = _service(database_path)
    _echo_result(anyio.run(service.restore_from_remote))


@config.command()
@database_option
def backups(database_path: Optional[str]):
    """List backups on the WebDAV server, newest first."""
    service = _service(database_path)
    result = anyio.run(service.list_remote_backups)
    if not result.success:
        _echo_result(result)

    if not result.files:
        click.echo("No backups found.")
    for entry in result.files:
        modified = entry.last_modified.strftime("%Y-%m-%d %H:%M:%S")
        click.echo(
            f"{click.style(entry.name, fg='cyan')}  "
            f"{entry.size_bytes / 1024:.2f} KB  {modified}"
        )


@config.command()
@database_option
def stats(database_path: Optional[str]):
    """Show a summary of local configuration state."""
    service = _service(database_path)
    result = anyio.run(service.get_stats)
    click.echo(json.dumps(result.model_dump(by_alias=True), indent=2))


@config.command()
@database_option
def test(database_path: Optional[str]):
    """Test the WebDAV connection with the stored settings."""
    service = _service(database_path)
    _echo_result(anyio.run(service.test_connection))


@config.command()
@database_option
def detect(database_path: Optional[str]):
    """Probe direct and relay modes and recommend one."""
    service = _service(database_path)
    result = anyio.run(service.detect_best_connection_mode)

    for label, probe in (("Direct", result.direct_result), ("Relay", result.proxy_result)):
        if probe is None:
            continue
        mark = click.style("✓", fg="green") if probe.success else click.style("✗", fg="red")
        click.echo(f"{mark} {label}: {probe.message}")

    click.echo(
        f"Recommended mode: {click.style(result.recommended_mode.value, fg='cyan')}"
    )
    click.echo(result.recommendation)
    if not result.success:
        raise click.ClickException(result.recommendation)


@config.command("set-mode")
@database_option
@click.argument("mode", type=click.Choice(["direct", "relay"]))
def set_mode(database_path: Optional[str], mode: str):
    """Select the direct or relay connection mode."""
    service = _service(database_path)
    target = ConnectionMode.DIRECT if mode == "direct" else ConnectionMode.RELAY
    _echo_result(anyio.run(service.set_connection_mode, target))


@config.command("set-webdav")
@database_option
@click.argument("url")
@click.argument("username")
@click.option(
    "--secret",
    prompt=True,
    hide_input=True,
    envvar="WEBDAV_SECRET",
    help="WebDAV password or app token (can also use WEBDAV_SECRET env var)",
)
def set_webdav(database_path: Optional[str], url: str, username: str, secret: str):
    """Store WebDAV server settings."""
    service = _service(database_path)
    saved = anyio.run(service.configure_webdav, url, username, secret)
    click.echo(
        click.style(
            f"✓ WebDAV settings saved ({saved.mode.value} mode)", fg="green"
        )
    )


@config.command()
@database_option
@click.confirmation_option(
    prompt="Are you sure you want to reset all local configuration? This cannot be undone."
)
def reset(database_path: Optional[str]):
    """Delete all local configuration and generate a new user id."""
    service = _service(database_path)
    user_id = anyio.run(service.reset_all)
    click.echo(click.style("✓ All configuration has been reset", fg="green"))
    click.echo(f"New user id: {user_id}")


def _favorites(database_path: Optional[str]) -> FavoritesService:
    return FavoritesService(_store(database_path, get_settings()))


def _echo_favorites(found: list[FavoritePaper]) -> None:
    if not found:
        click.echo("No favorite papers found.")
    for favorite in found:
        click.echo(
            f"{click.style(favorite.id, fg='cyan')}  [{favorite.category_id}]  {favorite.title}"
        )
        if favorite.notes:
            click.echo(f"    {favorite.notes}")


@click.group()
def favorites():
    """Manage favorite papers in the local store."""
    pass


@favorites.command("list")
@database_option
@click.option("--category", "-c", help="Only show favorites in this category")
def list_favorites(database_path: Optional[str], category: Optional[str]):
    """List favorite papers."""
    service = _favorites(database_path)
    if category:
        found = anyio.run(service.get_favorites_by_category, category)
    else:
        found = anyio.run(service.store.get_favorites)
    _echo_favorites(found)


@favorites.command()
@database_option
@click.argument("query")
def search(database_path: Optional[str], query: str):
    """Search favorites by title, summary, authors and notes."""
    service = _favorites(database_path)
    _echo_favorites(anyio.run(service.search_favorites, query))


@favorites.command("stats")
@database_option
def favorite_stats(database_path: Optional[str]):
    """Count favorites per category."""
    service = _favorites(database_path)
    click.echo(json.dumps(anyio.run(service.get_stats), indent=2))


@favorites.command()
@database_option
@click.argument("file", type=click.File("r", encoding="utf-8"))
@click.option("--category", "-c", default="default", show_default=True)
@click.option("--notes", "-n", help="Free-text notes kept with the favorite")
def add(database_path: Optional[str], file, category: str, notes: Optional[str]):
    """Favorite the paper described by the JSON in FILE (use - for stdin)."""
    try:
        paper = PaperSummary.model_validate_json(file.read())
    except ValidationError as e:
        raise click.ClickException(f"Invalid paper description: {e}")

    service = _favorites(database_path)
    favorite = anyio.run(service.add_favorite, paper, category, notes)
    click.echo(
        click.style(f"✓ Added {favorite.id} to '{favorite.category_id}'", fg="green")
    )


@favorites.command()
@database_option
@click.argument("paper_id")
@click.option("--category", "-c", help="Move the favorite to this category")
@click.option("--notes", "-n", help="Replace the favorite's notes")
def update(
    database_path: Optional[str],
    paper_id: str,
    category: Optional[str],
    notes: Optional[str],
):
    """Change the category or notes of a favorite."""
    service = _favorites(database_path)
    updated = anyio.run(service.update_favorite, paper_id, category, notes)
    if updated is None:
        raise click.ClickException(f"Paper {paper_id} is not in favorites")
    click.echo(click.style(f"✓ Updated {paper_id}", fg="green"))


@favorites.command()
@database_option
@click.argument("paper_id")
def remove(database_path: Optional[str], paper_id: str):
    """Remove a paper from favorites."""
    service = _favorites(database_path)
    if not anyio.run(service.remove_favorite, paper_id):
        raise click.ClickException(f"Paper {paper_id} is not in favorites")
    click.echo(click.style(f"✓ Removed {paper_id} from favorites", fg="green"))


# Create CLI group with subcommands
cli = click.Group()
cli.add_command(run)
cli.add_command(config)
cli.add_command(favorites)


if __name__ == "__main__":
    cli()
