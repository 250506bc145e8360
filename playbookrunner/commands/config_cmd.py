"""CLI handlers for config commands."""

from __future__ import annotations

import json
import tomllib

import click

from playbookrunner.config import DEFAULT_CONFIG_PATH, init_config, load_config


@click.group("config")
def config_group():
    """Manage configuration."""
    pass


@config_group.command("init")
def config_init():
    """Create default configuration file."""
    path = init_config()
    click.echo(f"Configuration created at: {path}")


@config_group.command("show")
def config_show():
    """Show current configuration."""
    config = load_config()
    click.echo(f"Config file: {config.config_path}")
    click.echo(f"  MongoDB: {config.mongodb.uri}/{config.mongodb.database}")
    click.echo(
        f"  Scheduler: poll every {config.scheduler.poll_interval}s, "
        f"default timezone {config.scheduler.default_timezone}"
    )
    has_key = "configured" if config.knowledge.api_key else "not set"
    click.echo(
        f"  Knowledge: {config.knowledge.base_url} (timeout={config.knowledge.timeout}s, "
        f"marker={config.knowledge.marker}, tags={','.join(config.knowledge.tags)}, key={has_key})"
    )
    click.echo(f"  Signal: {'enabled' if config.signal.enabled else 'disabled'} ({config.signal.http_url})")
    if config.signal.recipients:
        click.echo(f"    {len(config.signal.recipients)} mapped recipient(s)")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a configuration value.

    Modifies the TOML config file. Key uses dot notation, e.g.:
    scheduler.poll_interval, knowledge.base_url, signal.enabled
    """
    import tomli_w

    path = DEFAULT_CONFIG_PATH
    if not path.exists():
        click.echo("No config file found. Run 'playbookrunner config init' first.", err=True)
        return

    with open(path, "rb") as f:
        data = tomllib.load(f)

    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        if part not in target:
            target[part] = {}
        target = target[part]

    final_key = parts[-1]
    if value.lower() in ("true", "false"):
        target[final_key] = value.lower() == "true"
    elif value.isdigit():
        target[final_key] = int(value)
    elif value.startswith("[") or value.startswith("{"):
        try:
            target[final_key] = json.loads(value)
        except json.JSONDecodeError:
            target[final_key] = value
    else:
        target[final_key] = value

    with open(path, "wb") as f:
        tomli_w.dump(data, f)

    click.echo(f"Set {key} = {value}")
