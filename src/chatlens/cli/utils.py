"""Shared helpers for chatlens CLI commands."""

import json
from contextlib import contextmanager
from datetime import datetime

import click

from ..errors import ChatArchiveError
from ..timefilter import build_time_filter

archive_argument = click.argument(
    "database", type=click.Path(exists=True, dir_okay=False)
)

json_option = click.option(
    "--json", "as_json", is_flag=True, help="Print the raw result as JSON."
)


def time_filter_options(func):
    """Add --start/--end/--year/--month/--day/--hour options to a command."""
    options = [
        click.option("--start", help='Start time, "YYYY-MM-DD HH:MM" or epoch seconds.'),
        click.option("--end", help='End time, "YYYY-MM-DD HH:MM" or epoch seconds.'),
        click.option("--year", type=int, help="Restrict to a calendar year."),
        click.option("--month", type=click.IntRange(1, 12), help="Month (needs --year)."),
        click.option("--day", type=click.IntRange(1, 31), help="Day (needs --month)."),
        click.option("--hour", type=click.IntRange(0, 23), help="Hour (needs --day)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def resolve_time_filter(start, end, year, month, day, hour):
    try:
        return build_time_filter(
            start=start, end=end, year=year, month=month, day=day, hour=hour
        )
    except ValueError as e:
        raise click.BadParameter(str(e))


@contextmanager
def cli_errors():
    """Turn library errors into ClickException (non-zero exit, no traceback)."""
    try:
        yield
    except (ChatArchiveError, ValueError) as e:
        raise click.ClickException(str(e))


def echo_json(data):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def format_ts(ts):
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def format_duration(start_ts, end_ts):
    seconds = max(0, end_ts - start_ts)
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours:
        return f"{hours}h{minutes:02d}m"
    return f"{minutes}m"


def format_message_line(message, highlight=False):
    """One display line per message: time, sender and content."""
    marker = ">" if highlight else " "
    sender = message.get("sender_name") or "?"
    content = (message.get("content") or "").replace("\n", " ")
    line = f"{marker} [{format_ts(message['timestamp'])}] {sender}: {content}"
    reply_to = message.get("reply_to_content")
    if reply_to:
        reply_sender = message.get("reply_to_sender_name") or "?"
        line += f"  (re {reply_sender}: {reply_to[:40]})"
    return line


def format_session_header(session):
    """Summary line for a session row (id, time span, size)."""
    return (
        f"#{session['id']}  {format_ts(session['start_ts'])} -> "
        f"{format_ts(session['end_ts'])}  "
        f"({format_duration(session['start_ts'], session['end_ts'])}, "
        f"{session['message_count']} messages)"
    )


def echo_blocks(result):
    """Print context blocks followed by the aggregate stats."""
    for index, block in enumerate(result["blocks"], 1):
        click.echo(
            f"--- Block {index}: {format_ts(block['start_ts'])} -> "
            f"{format_ts(block['end_ts'])} ({len(block['messages'])} messages, "
            f"{block['hit_count']} hits)"
        )
        for message in block["messages"]:
            click.echo(format_message_line(message, highlight=message["is_hit"]))
    stats = result["stats"]
    click.echo(
        f"{len(result['blocks'])} blocks, {stats['total_messages']} messages, "
        f"{stats['hit_messages']} hits, {stats['total_chars']} chars"
    )
