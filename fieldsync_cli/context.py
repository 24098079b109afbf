"""Engine access for CLI commands."""
import contextlib

import click

from fieldsync.engine import OfflineEngine


@contextlib.contextmanager
def open_engine(ctx: click.Context, probe_first: bool = True):
    """Start an engine without background threads for one command.

    Args:
        ctx: Click context carrying "config" and "engine_factory"
        probe_first: Run one connectivity check before yielding
    """
    obj = ctx.find_root().obj
    factory = obj.get("engine_factory", OfflineEngine)
    engine = factory(obj["config"])
    engine.start(background=False, precache=False)
    try:
        if probe_first:
            engine.monitor.check()
        yield engine
    finally:
        engine.stop()
