"""
Gatewarden CLI entry point.
"""

import sys
from pathlib import Path

import click

from gatewarden.config.app import default_config_file, generate_default_config, load_config
from gatewarden.utils.logs import setup_logging
from gatewarden.watchdog import Watchdog


@click.group()
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    help="Path to custom configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None) -> None:
    """Gatewarden - watchdog for the gateway service."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config


@cli.command()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose debug output",
)
@click.pass_context
def run(ctx: click.Context, verbose: bool) -> None:
    """Run the watchdog loop until terminated."""
    try:
        config = load_config(ctx.obj["config_file"])
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    handler = setup_logging(config.logging, verbose=verbose)
    watchdog = Watchdog(config=config, log_handler=handler)
    watchdog.install_signal_handlers()
    watchdog.run()


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@click.pass_context
def init_config(ctx: click.Context, force: bool) -> None:
    """Write a configuration file populated with defaults."""
    config_file = ctx.obj["config_file"] or default_config_file()
    path = Path(config_file).expanduser()
    if path.exists() and not force:
        click.echo(f"Configuration already exists at {path} (use --force to overwrite)", err=True)
        sys.exit(1)
    generate_default_config(config_file)
    click.echo(f"Wrote default configuration to {path}")
