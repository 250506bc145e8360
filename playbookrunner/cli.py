"""Click CLI definitions - main entry point."""

from __future__ import annotations

import logging
import sys

import click

from playbookrunner.commands.config_cmd import config_group
from playbookrunner.commands.run_cmd import run_group
from playbookrunner.commands.scheduler_cmd import scheduler_group
from playbookrunner.commands.template_cmd import template_group


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, debug: bool) -> None:
    """playbookrunner - recurring playbook runs and scheduled updates."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


cli.add_command(config_group, "config")
cli.add_command(template_group, "template")
cli.add_command(run_group, "run")
cli.add_command(scheduler_group, "scheduler")


if __name__ == "__main__":
    cli()
