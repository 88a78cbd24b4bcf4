"""CLI entrypoint for running jollybot as a module."""

from jollybot.cli import cli
from jollybot.logging import setup_logging

if __name__ == "__main__":
    setup_logging()
    cli()
