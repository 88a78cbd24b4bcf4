"""Command-line interface for jollybot."""

import asyncio
from pathlib import Path

import click

from jollybot import __version__
from jollybot.config import Config
from jollybot.errors import ConfigError
from jollybot.logging import get_logger, setup_logging

log = get_logger("cli")


@click.group()
@click.option(
    "-c",
    "--config-file",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set logging level (overrides config).",
)
@click.option(
    "--log-json/--no-log-json",
    default=None,
    help="Output logs as JSON or human-readable format (overrides config).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Path | None,
    log_level: str | None,
    log_json: bool | None,
) -> None:
    """jollybot - replaces skull reactions with the jollyskull.

    Watches one channel for skull reactions and skull-only messages from a
    set of users and swaps them for the jollyskull.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level
    ctx.obj["log_json"] = log_json

    # Config may be incomplete for commands like `version`; load it lazily
    setup_logging(
        json_output=log_json if log_json is not None else True,
        level=log_level or "INFO",
    )


def _load_config(ctx: click.Context) -> Config:
    """Load config for a command, exiting with a message on failure."""
    try:
        config = Config.load(ctx.obj["config_file"])
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1)

    # CLI overrides config
    log_level = ctx.obj["log_level"] or config.log_level
    log_json = ctx.obj["log_json"] if ctx.obj["log_json"] is not None else config.log_json
    setup_logging(json_output=log_json, level=log_level)
    return config


@cli.command()
def version() -> None:
    """Print version information."""
    click.echo(f"jollybot {__version__}")


@cli.command()
@click.option(
    "--no-backfill",
    is_flag=True,
    default=False,
    help="Skip the historical backfill and only handle live events.",
)
@click.pass_context
def run(ctx: click.Context, no_backfill: bool) -> None:
    """Connect to Discord and start replacing skulls.

    Requires DISCORD_TOKEN environment variable to be set.
    Use Ctrl+C or send SIGTERM for graceful shutdown.
    """
    from jollybot.bot import run_bot

    config = _load_config(ctx)

    token = config.discord_token
    if not token:
        click.echo("Error: DISCORD_TOKEN environment variable not set", err=True)
        raise SystemExit(1)

    if no_backfill:
        config.backfill.enabled = False

    log.info(
        "run_command_invoked",
        guild_id=config.guild_id,
        channel=config.channel_name,
        target_users=len(config.target_user_ids),
        backfill=config.backfill.enabled,
    )

    try:
        asyncio.run(run_bot(config, token))
    except KeyboardInterrupt:
        log.info("shutdown_requested_keyboard")
    except Exception as e:
        log.error("run_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command(name="check")
@click.pass_context
def config_check(ctx: click.Context) -> None:
    """Validate configuration from file and environment."""
    cfg = _load_config(ctx)
    source = ctx.obj["config_file"] or "environment"
    click.echo(f"Configuration valid: {source}")
    click.echo(f"  Guild ID: {cfg.guild_id}")
    click.echo(f"  Channel: {cfg.channel_name}")
    click.echo(f"  Target users: {len(cfg.target_user_ids)}")
    click.echo(f"  Jollyskull: {cfg.jollyskull_id}")
    click.echo(f"  Log level: {cfg.log_level}")
    if cfg.backfill.enabled:
        click.echo(f"  Backfill cutoff: {cfg.backfill.cutoff.isoformat()}")
    else:
        click.echo("  Backfill: disabled")
    if not cfg.discord_token:
        click.echo("  Warning: DISCORD_TOKEN is not set", err=True)
