"""Operations CLI for Keys Depot."""
import json

import click

from keysdepot.core.config import settings
from keysdepot.domain.depot.models import list_algorithms


@click.group()
def cli():
    """Keys Depot operations."""
    pass


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
@click.option("--workers", default=1, type=int, help="Worker processes")
def serve(host: str, port: int, workers: int):
    """Run the depot API."""
    import uvicorn

    uvicorn.run("keysdepot.main:app", host=host, port=port, workers=workers)


@cli.command("init-db")
@click.option("--database-url", default=None, help="Overrides DATABASE_URL")
def init_db(database_url):
    """Create the depot tables in the configured database."""
    from keysdepot.adapters.postgres.session import build_engine, init_schema

    url = database_url or settings.DATABASE_URL
    init_schema(build_engine(url))
    click.echo("✓ Schema initialized")


@cli.command("algorithms")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table")
def algorithms(fmt: str):
    """List supported crypto algorithms."""
    items = list_algorithms()

    if fmt == "json":
        click.echo(json.dumps([a.model_dump() for a in items], indent=2))
    else:
        click.echo(f"\n{'ID':<10} {'Label':<36} {'Reversible':<10}")
        click.echo("-" * 58)
        for a in items:
            click.echo(f"{a.id:<10} {a.label:<36} {'yes' if a.reversible else 'no':<10}")


if __name__ == "__main__":
    cli()
