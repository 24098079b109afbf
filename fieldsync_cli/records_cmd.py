"""Record save/fetch CLI commands."""
import json
from pathlib import Path

import click

from fieldsync.core.errors import FieldSyncError, RecordValidationError
from fieldsync.records import RECORD_TYPES

from .context import open_engine
from .output import print_error, print_json, print_success


def _load_data(data: str) -> dict:
    """Inline JSON, or @path to a JSON file."""
    if data.startswith("@"):
        data = Path(data[1:]).read_text(encoding="utf-8")
    try:
        loaded = json.loads(data)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data") from e
    if not isinstance(loaded, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return loaded


@click.command()
@click.option("--type", "record_type", required=True, type=click.Choice(RECORD_TYPES))
@click.option("--data", required=True, help="Record fields as JSON, or @file.json")
@click.pass_context
def save(ctx, record_type: str, data: str):
    """Submit a record, queueing it when offline."""
    record = {**_load_data(data), "type": record_type}
    try:
        with open_engine(ctx) as engine:
            result = engine.client.save(record)
    except RecordValidationError as e:
        print_error(f"Invalid record: {e}")
        ctx.exit(2)
    except FieldSyncError as e:
        print_error(f"Save failed: {e}")
        ctx.exit(1)

    if result.get("offline"):
        print_success("Saved offline, will sync when connection is restored")
    else:
        print_success("Saved")
    print_json(result)


@click.command()
@click.option("--type", "record_type", type=click.Choice(RECORD_TYPES), help="Only this record type")
@click.pass_context
def fetch(ctx, record_type: str | None):
    """Fetch records, from cache when offline."""
    try:
        with open_engine(ctx) as engine:
            result = engine.client.fetch_all(record_type)
    except FieldSyncError as e:
        print_error(f"Fetch failed: {e}")
        ctx.exit(1)

    print_json(result)
