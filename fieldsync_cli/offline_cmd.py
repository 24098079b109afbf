"""Offline queue and sync CLI commands."""
import click

from fieldsync.core.errors import FieldSyncError

from .context import open_engine
from .output import print_error, print_json, print_success, table


@click.command()
@click.pass_context
def status(ctx):
    """Show offline queue status."""
    try:
        with open_engine(ctx) as engine:
            print_json(engine.status())
    except FieldSyncError as e:
        print_error(f"Status check failed: {e}")
        ctx.exit(1)


@click.command("queue")
@click.option("--limit", "-n", default=10, help="Number of mutations to show")
@click.pass_context
def queue_cmd(ctx, limit: int):
    """List pending mutations in the queue."""
    with open_engine(ctx, probe_first=False) as engine:
        pending = engine.queue.list_pending(limit=limit)

        if not pending:
            click.echo("Queue is empty")
            return

        click.echo(f"Showing {len(pending)} of {engine.queue.pending_count()} pending mutations:\n")
        table(
            ["id", "method", "type", "created", "attempts", "last error"],
            [
                [m.id, m.method, m.record_type or "-", m.created_at, m.attempts, m.last_error or ""]
                for m in pending
            ],
        )


@click.command("sync")
@click.option("--force", is_flag=True, help="Attempt sync even if the API looks unreachable")
@click.pass_context
def sync_cmd(ctx, force: bool):
    """Replay the offline queue against the API."""
    try:
        with open_engine(ctx) as engine:
            if not engine.monitor.is_online():
                if not force:
                    print_error("Not connected. Use --force to attempt anyway.")
                    ctx.exit(1)
                engine.monitor.set_online(True)

            result = engine.sync_now()

            if result.success:
                print_success(f"Synced {len(result.synced)} mutations")
            else:
                print_error(f"{len(result.failed)} mutations still pending")
            print_json(result.to_dict())
    except FieldSyncError as e:
        print_error(f"Sync failed: {e}")
        ctx.exit(1)


@click.command()
@click.pass_context
def connected(ctx):
    """Check if the records API is reachable."""
    with open_engine(ctx) as engine:
        online = engine.monitor.is_online()
        print_json({
            "connected": online,
            "status": "online" if online else "offline",
        })


@click.command()
@click.pass_context
def prune(ctx):
    """Delete mutations already accepted by the server."""
    try:
        with open_engine(ctx, probe_first=False) as engine:
            removed = engine.queue.prune_synced()
            print_success(f"Pruned {removed} synced mutations")
    except FieldSyncError as e:
        print_error(f"Prune failed: {e}")
        ctx.exit(1)


@click.command()
@click.pass_context
def clear(ctx):
    """Drop every queued mutation, delivered or not."""
    with open_engine(ctx, probe_first=False) as engine:
        size = engine.queue.pending_count()
        if size == 0:
            click.echo("Queue already empty")
            return

        if click.confirm(f"Discard {size} pending mutations?"):
            engine.queue.clear()
            print_success("Queue cleared")


@click.group()
def cache():
    """Response cache commands."""
    pass


@cache.command()
@click.pass_context
def purge(ctx):
    """Delete caches left by previous versions."""
    with open_engine(ctx, probe_first=False) as engine:
        purged = engine.interceptor.activate()
        print_json({
            "current": list(engine.cache.current_names),
            "purged": purged,
        })
