"""Sync agent entry point."""

import asyncio
import json
import logging

import click
import structlog

from anithing_client.agent import SyncAgent
from anithing_client.config import Config
from anithing_client.errors import SyncError
from anithing_client.services.offline_queue import AUTH_REQUIRED


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


async def _with_agent(fn):
    agent = SyncAgent(Config())
    await agent.open()
    try:
        return await fn(agent)
    finally:
        await agent.stop()


def _run(fn):
    try:
        return asyncio.run(_with_agent(fn))
    except SyncError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose):
    """Offline queue and media cache for the AniThing API."""
    configure_logging(verbose)


@cli.command()
def run():
    """Run the agent until interrupted."""

    async def main():
        agent = SyncAgent(Config())
        await agent.start()
        try:
            await asyncio.Event().wait()
        finally:
            await agent.stop()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        click.echo("Stopped")


@cli.command()
def flush():
    """Replay pending actions once."""

    async def action(agent: SyncAgent):
        refused = []
        agent.queue.subscribe(lambda event, a: refused.append(a.id) if event == AUTH_REQUIRED else None)
        result = await agent.flush()
        click.echo(
            f"confirmed={len(result.confirmed)} still_pending={len(result.still_pending)} "
            f"failed={len(result.failed)} rejected={len(result.rejected)}"
        )
        if refused:
            raise click.ClickException(
                "The backend refused the API token; set ANITHING_API_TOKEN and flush again"
            )

    _run(action)


@cli.command()
def evict():
    """Drop cached titles older than the retention window."""

    async def action(agent: SyncAgent):
        count = await agent.evict()
        click.echo(f"Evicted {count} cached titles")

    _run(action)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print actions as JSON")
def status(as_json):
    """Show queued, failed and rejected actions."""

    async def action(agent: SyncAgent):
        groups = {
            "pending": await agent.queue.pending(),
            "failed": await agent.queue.failed(),
            "rejected": await agent.queue.rejected(),
        }
        if as_json:
            payload = {k: [a.to_dict() for a in v] for k, v in groups.items()}
            click.echo(json.dumps(payload, indent=2))
            return

        for name, actions in groups.items():
            click.echo(f"{name}: {len(actions)}")
            for a in actions:
                suffix = f"  ({a.last_error})" if a.last_error else ""
                click.echo(f"  #{a.seq} {a.type} title={a.entity_id} tries={a.retry_count}{suffix}")

    _run(action)


@cli.command("retry-failed")
@click.argument("ids", nargs=-1)
def retry_failed(ids):
    """Requeue failed actions (all of them when no ids are given)."""

    async def action(agent: SyncAgent):
        count = await agent.queue.retry_failed(list(ids) or None)
        click.echo(f"Requeued {count} actions")

    _run(action)


@cli.command()
@click.argument("action_id")
def discard(action_id):
    """Drop one queued action permanently."""

    async def action(agent: SyncAgent):
        if not await agent.queue.discard(action_id):
            raise click.ClickException(f"No action {action_id}")
        click.echo(f"Discarded {action_id}")

    _run(action)


@cli.command()
def odds():
    """Show loot box odds published by the backend."""

    async def action(agent: SyncAgent):
        for box_type, bands in (await agent.api.get_odds()).items():
            click.echo(f"{box_type}:")
            for band in bands:
                click.echo(f"  {band['tier']:<10} {band['probability'] * 100:8.4f}%")

    _run(action)


if __name__ == "__main__":
    cli()
