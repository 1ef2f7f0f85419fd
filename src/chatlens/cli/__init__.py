"""CLI commands for chatlens."""

import click
from click_default_group import DefaultGroup

from ..logging_config import configure_logging
from .filter_cmd import filter_cmd, members_cmd
from .sessions import (
    clear_cmd,
    search_cmd,
    segment_cmd,
    sessions_cmd,
    show_cmd,
    status_cmd,
    summaries_cmd,
    summary_cmd,
    threshold_cmd,
)


@click.group(cls=DefaultGroup, default="filter")
@click.version_option(None, "-v", "--version", package_name="chatlens")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for stderr output (default: WARNING).",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also log to this file.")
def cli(log_level, log_file):
    """Segment chat archives into sessions and search them with context.

    Build a session index with 'segment', browse it with 'sessions',
    'search' and 'show', or run 'filter' (the default command) to find
    messages with surrounding context.
    """
    configure_logging(log_level, log_file)


# Register commands
cli.add_command(segment_cmd, "segment")
cli.add_command(clear_cmd, "clear")
cli.add_command(status_cmd, "status")
cli.add_command(threshold_cmd, "threshold")
cli.add_command(sessions_cmd, "sessions")
cli.add_command(search_cmd, "search")
cli.add_command(show_cmd, "show")
cli.add_command(summary_cmd, "summary")
cli.add_command(summaries_cmd, "summaries")
cli.add_command(filter_cmd, "filter")
cli.add_command(members_cmd, "members")


def main():
    cli()


__all__ = [
    "cli",
    "main",
    "segment_cmd",
    "clear_cmd",
    "status_cmd",
    "threshold_cmd",
    "sessions_cmd",
    "search_cmd",
    "show_cmd",
    "summary_cmd",
    "summaries_cmd",
    "filter_cmd",
    "members_cmd",
]
