"""fieldsync CLI entry point - assembles all command groups."""
import logging
from pathlib import Path

import click

from fieldsync.config import SyncConfig
from fieldsync.core.errors import ConfigError

from . import __version__
from .offline_cmd import cache, clear, connected, prune, queue_cmd, status, sync_cmd
from .output import print_error
from .records_cmd import fetch, save


@click.group()
@click.version_option(version=__version__)
@click.option("--data-dir", type=click.Path(path_type=Path), help="Directory holding the offline stores")
@click.option("--api-url", help="Base URL of the records API")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, data_dir, api_url, verbose):
    """fieldsync: offline-first sync for field maintenance records."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    obj = ctx.ensure_object(dict)
    config = obj.get("config") or SyncConfig.from_env()
    if data_dir is not None:
        config.data_dir = data_dir
    if api_url:
        config.api_base_url = api_url

    try:
        config.require_valid()
    except ConfigError as e:
        print_error(f"Invalid configuration: {e}")
        ctx.exit(2)

    obj["config"] = config


cli.add_command(status)
cli.add_command(queue_cmd)
cli.add_command(sync_cmd)
cli.add_command(connected)
cli.add_command(prune)
cli.add_command(clear)
cli.add_command(cache)
cli.add_command(save)
cli.add_command(fetch)


if __name__ == "__main__":
    cli()
