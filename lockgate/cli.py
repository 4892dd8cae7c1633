#!/usr/bin/env python3
"""CLI commands for lockgate."""

import asyncio
import json

import click

from lockgate.core.config import Settings
from lockgate.core.db import create_engine, create_session_factory, create_tables
from lockgate.core.logging import configure_logging
from lockgate.database.repositories import LockRecordRepository


async def _with_repository(settings: Settings, action):
    engine = create_engine(settings.DATABASE_URL, settings.MAX_CONNECTIONS)
    try:
        await create_tables(engine)
        return await action(LockRecordRepository(create_session_factory(engine)))
    finally:
        await engine.dispose()


@click.group()
def cli():
    """Time-lock gated upload service commands."""
    pass


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default: HOST setting)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: PORT setting)")
def serve(host, port):
    """Run the HTTP service."""
    import uvicorn

    from lockgate.main import create_app

    settings = Settings()
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
    uvicorn.run(
        create_app(settings),
        host=host or settings.HOST,
        port=port or settings.PORT,
        log_config=None,
    )


@cli.command("init-db")
def init_db():
    """Create the lock record table if it does not exist."""
    settings = Settings()

    async def _count(repository: LockRecordRepository) -> int:
        return await repository.count()

    total = asyncio.run(_with_repository(settings, _count))
    click.echo(f"Record store ready at {settings.DATABASE_URL} ({total} records)")


@cli.command()
def status():
    """Show record store status."""
    settings = Settings()

    async def _count(repository: LockRecordRepository) -> int:
        return await repository.count()

    total = asyncio.run(_with_repository(settings, _count))
    click.echo("Lock Record Store Status:")
    click.echo(f"  Records: {total}")
    click.echo(f"  Required lock amount: {settings.REQUIRED_LOCK_AMOUNT}")
    click.echo(f"  Required lock duration: {settings.REQUIRED_LOCK_DURATION_BLOCKS} blocks")
    click.echo(f"  Freshness window: {settings.FRESHNESS_WINDOW_SECONDS:g} seconds")


@cli.command()
@click.argument("reference")
def inspect(reference):
    """Show the content a transaction reference unlocked."""
    settings = Settings()

    async def _find(repository: LockRecordRepository):
        return await repository.find_by_reference(reference)

    record = asyncio.run(_with_repository(settings, _find))
    if record is None:
        click.echo(f"Transaction {reference} has not been used")
        raise SystemExit(1)
    click.echo(json.dumps(record.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
