"""CLI handler for the scheduler worker."""

from __future__ import annotations

import asyncio
import signal

import click

from playbookrunner.commands._helpers import get_context, run_async


@click.group("scheduler")
def scheduler_group():
    """Run the schedule worker."""
    pass


@scheduler_group.command("run")
def scheduler_run():
    """Fire scheduled updates in the foreground until interrupted."""

    async def _serve():
        ctx = await get_context()
        try:
            ctx.timers.start()
            click.echo(
                f"Scheduler running (poll every {ctx.config.scheduler.poll_interval}s). "
                "Press Ctrl-C to stop."
            )

            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(signum, stop_event.set)

            await stop_event.wait()
            click.echo("Stopping scheduler...")
        finally:
            await ctx.close()

    run_async(_serve())
