"""CLI handlers for run commands."""

from __future__ import annotations

from datetime import timezone as dt_timezone

import click

from playbookrunner.commands._helpers import get_context, run_async
from playbookrunner.models.playbook import Frequency, RunStatus


@click.group("run")
def run_group():
    """Start and advance playbook runs."""
    pass


@run_group.command("start")
@click.argument("template_id")
@click.argument("name")
@click.option("--description", "-d", default="", help="Run description")
@click.option("--owner", "-o", default="", help="Owner user id")
@click.option("--participant", "-p", "participants", multiple=True, help="Participant user id")
def run_start(template_id: str, name: str, description: str, owner: str, participants: tuple[str, ...]):
    """Start a run from a template."""

    async def _start():
        ctx = await get_context()
        try:
            run = await ctx.run_service.start_run(
                template_id, name, description=description, owner=owner,
                participants=participants,
            )
            if run is None:
                click.echo(f"Template not found: {template_id}", err=True)
                return
            click.echo(f"Started run: {run.name} ({run.id})")
        finally:
            await ctx.close()

    run_async(_start())


@run_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in RunStatus], case_sensitive=False),
    default=None,
    help="Only show runs in this status",
)
def run_list(status: str | None):
    """List runs."""

    async def _list():
        ctx = await get_context()
        try:
            runs = await ctx.run_service.list_runs(RunStatus(status) if status else None)
            if not runs:
                click.echo("No runs found.")
                return
            for r in runs:
                done = sum(1 for s in r.steps if s.status.is_resolved)
                click.echo(f"  {r.id}  {r.name} ({r.status.value}) {done}/{len(r.steps)} steps")
        finally:
            await ctx.close()

    run_async(_list())


@run_group.command("show")
@click.argument("run_id")
def run_show(run_id: str):
    """Show run details, schedules and updates."""

    async def _show():
        ctx = await get_context()
        try:
            run = await ctx.run_service.get_run(run_id)
            if run is None:
                click.echo(f"Run not found: {run_id}", err=True)
                return
            click.echo(f"Run: {run.name}")
            click.echo(f"  Status: {run.status.value}")
            click.echo(f"  Template: {run.template_id} v{run.template_version}")
            click.echo(f"  Started: {run.started_at.isoformat()}")
            if run.completed_at:
                click.echo(f"  Completed: {run.completed_at.isoformat()}")
            for i, step in enumerate(run.steps):
                marker = ">" if i == run.current_step_index and run.is_active else " "
                click.echo(f"  {marker} {step.id}: {step.title} [{step.status.value}]")
            for sched in run.schedules:
                state = "active" if sched.active else "inactive"
                nxt = sched.next_run.isoformat() if sched.next_run else "-"
                click.echo(f"  Schedule {sched.id}: {sched.frequency.value} {sched.time} {sched.timezone} next={nxt} ({state})")
            for upd in run.updates:
                click.echo(f"  [{upd.created_at.isoformat()}] {upd.created_by}@{upd.step_id}: {upd.content}")
        finally:
            await ctx.close()

    run_async(_show())


def _step_command(name: str, verb: str):
    @run_group.command(name, help=f"{verb.capitalize()} a step of a run.")
    @click.argument("run_id")
    @click.argument("step_id")
    def _command(run_id: str, step_id: str):
        async def _apply():
            ctx = await get_context()
            try:
                method = getattr(ctx.run_service, f"{verb}_step")
                run = await method(run_id, step_id)
                if run is None:
                    click.echo(f"Run or step not found: {run_id}/{step_id}", err=True)
                    return
                click.echo(f"Run {run.id}: {run.status.value}, current step {run.current_step.id}")
            except ValueError as e:
                click.echo(f"Error: {e}", err=True)
            finally:
                await ctx.close()

        run_async(_apply())

    return _command


run_complete_step = _step_command("complete-step", "complete")
run_skip_step = _step_command("skip-step", "skip")


@run_group.command("update")
@click.argument("run_id")
@click.argument("content")
@click.option("--step", "step_id", default="", help="Step id (defaults to the current step)")
@click.option("--author", default="cli", help="Author user id")
def run_update(run_id: str, content: str, step_id: str, author: str):
    """Record a manual update."""

    async def _update():
        ctx = await get_context()
        try:
            run = await ctx.run_service.get_run(run_id)
            if run is None:
                click.echo(f"Run not found: {run_id}", err=True)
                return
            update = await ctx.run_service.add_update(
                run_id, step_id or run.current_step_id, content, author
            )
            click.echo(f"Recorded update {update.id} on {update.step_id}")
        finally:
            await ctx.close()

    run_async(_update())


@run_group.command("archive")
@click.argument("run_id")
def run_archive(run_id: str):
    """Archive a run and stop its schedules."""

    async def _archive():
        ctx = await get_context()
        try:
            if await ctx.run_service.archive_run(run_id):
                click.echo(f"Archived run: {run_id}")
            else:
                click.echo(f"Run not found: {run_id}", err=True)
        finally:
            await ctx.close()

    run_async(_archive())


@run_group.command("schedule")
@click.argument("run_id")
@click.argument("frequency", type=click.Choice([f.value for f in Frequency]))
@click.argument("time")
@click.argument("prompt")
@click.option("--timezone", "-z", default=None, help="IANA timezone (defaults to config)")
@click.option("--day", "days", type=click.IntRange(0, 6), multiple=True, help="Weekday for weekly schedules, 0=Sunday")
@click.option("--day-of-month", type=click.IntRange(1, 31), default=None, help="Day for monthly schedules")
@click.option("--at", "next_run", type=click.DateTime(), default=None, help="Fire time for custom schedules (UTC)")
@click.option("--notify", is_flag=True, help="Notify participants when it fires")
def run_schedule(run_id, frequency, time, prompt, timezone, days, day_of_month, next_run, notify):
    """Attach a recurring update request to a run.

    The running scheduler worker picks the schedule up on its next poll.
    """

    async def _schedule():
        ctx = await get_context()
        try:
            schedule = await ctx.run_service.add_scheduled_update(
                run_id,
                frequency,
                time,
                prompt,
                timezone=timezone,
                days=days,
                day_of_month=day_of_month,
                notify_participants=notify,
                next_run=next_run.replace(tzinfo=dt_timezone.utc) if next_run else None,
            )
            if schedule is None:
                click.echo(f"Run not found: {run_id}", err=True)
                return
            click.echo(f"Added schedule {schedule.id}, next run {schedule.next_run.isoformat()}")
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
        finally:
            await ctx.close()

    run_async(_schedule())


@run_group.command("unschedule")
@click.argument("run_id")
@click.argument("schedule_id")
def run_unschedule(run_id: str, schedule_id: str):
    """Stop a schedule."""

    async def _unschedule():
        ctx = await get_context()
        try:
            if await ctx.run_service.remove_scheduled_update(run_id, schedule_id):
                click.echo(f"Removed schedule: {schedule_id}")
            else:
                click.echo(f"Schedule not found: {schedule_id}", err=True)
        finally:
            await ctx.close()

    run_async(_unschedule())


@run_group.command("delete")
@click.argument("run_id")
@click.confirmation_option(prompt="Delete the run with its schedules and updates?")
def run_delete(run_id: str):
    """Delete a run with its schedules and updates."""

    async def _delete():
        ctx = await get_context()
        try:
            if await ctx.run_service.delete_run(run_id):
                click.echo(f"Deleted run: {run_id}")
            else:
                click.echo(f"Run not found: {run_id}", err=True)
        finally:
            await ctx.close()

    run_async(_delete())
