"""CLI handlers for template commands."""

from __future__ import annotations

import click

from playbookrunner.commands._helpers import get_context, run_async


@click.group("template")
def template_group():
    """Inspect playbook templates."""
    pass


@template_group.command("seed")
def template_seed():
    """Insert the default templates that are missing."""

    async def _seed():
        ctx = await get_context()
        try:
            created = await ctx.template_service.seed_defaults()
            if not created:
                click.echo("Default templates already present.")
            for t in created:
                click.echo(f"Created template: {t.name} ({t.id})")
        finally:
            await ctx.close()

    run_async(_seed())


@template_group.command("list")
def template_list():
    """List templates."""

    async def _list():
        ctx = await get_context()
        try:
            templates = await ctx.template_service.list_templates()
            if not templates:
                click.echo("No templates found. Run 'playbookrunner template seed'.")
                return
            for t in templates:
                tags = f" [{', '.join(t.tags)}]" if t.tags else ""
                click.echo(f"  {t.id}  {t.name} v{t.version} ({len(t.steps)} steps){tags}")
        finally:
            await ctx.close()

    run_async(_list())
