"""Session index commands: build, inspect and query conversation sessions."""

import click
import questionary

from ..config import (
    CLI_SESSION_MESSAGES_LIMIT,
    DEFAULT_PREVIEW_COUNT,
    DEFAULT_SEARCH_LIMIT,
)
from ..sessions import (
    clear_sessions,
    generate_sessions,
    get_gap_threshold,
    get_multiple_sessions_messages,
    get_session_messages,
    get_session_stats,
    get_session_summary,
    get_sessions,
    save_session_summary,
    search_session_summaries,
    search_sessions,
    set_gap_threshold,
)
from .utils import (
    archive_argument,
    cli_errors,
    echo_blocks,
    echo_json,
    format_message_line,
    format_session_header,
    json_option,
    resolve_time_filter,
    time_filter_options,
)


@click.command("segment")
@archive_argument
@click.option(
    "-g",
    "--gap",
    type=click.IntRange(min=0),
    help="Gap threshold in seconds (default: the archive's stored threshold).",
)
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress output.")
def segment_cmd(database, gap, quiet):
    """Rebuild the session index of DATABASE.

    Messages further apart than the gap threshold start a new session.
    The previous index is replaced entirely.
    """

    def report(current, total):
        if not quiet:
            click.echo(f"[{current}/{total}] sessions written")

    with cli_errors():
        count = generate_sessions(database, gap_threshold=gap, progress_callback=report)

    click.echo(f"Generated {count} session(s)")


@click.command("clear")
@archive_argument
def clear_cmd(database):
    """Delete the session index of DATABASE."""
    with cli_errors():
        clear_sessions(database)
    click.echo("Session index cleared")


@click.command("status")
@archive_argument
@json_option
def status_cmd(database, as_json):
    """Show whether DATABASE has a session index and its gap threshold."""
    stats = get_session_stats(database)
    if as_json:
        echo_json(stats)
        return

    state = "yes" if stats["has_index"] else "no"
    click.echo(f"Indexed:       {state}")
    click.echo(f"Sessions:      {stats['session_count']}")
    click.echo(f"Gap threshold: {stats['gap_threshold']}s")


@click.command("threshold")
@archive_argument
@click.argument("seconds", required=False, type=click.IntRange(min=0))
@click.option("--reset", is_flag=True, help="Fall back to the default threshold.")
def threshold_cmd(database, seconds, reset):
    """Show or update the gap threshold stored in DATABASE.

    The new threshold applies to the next 'segment' run.
    """
    if reset and seconds is not None:
        raise click.UsageError("Pass either SECONDS or --reset, not both.")

    if reset or seconds is not None:
        with cli_errors():
            set_gap_threshold(database, None if reset else seconds)

    click.echo(f"Gap threshold: {get_gap_threshold(database)}s")


@click.command("sessions")
@archive_argument
@json_option
def sessions_cmd(database, as_json):
    """List every session in DATABASE in chronological order."""
    sessions = get_sessions(database)
    if as_json:
        echo_json(sessions)
        return

    if not sessions:
        click.echo("No sessions found. Run 'chatlens segment' first.")
        return

    for session in sessions:
        line = format_session_header(session)
        if session["summary"]:
            line += f"  {session['summary']}"
        click.echo(line)


@click.command("search")
@archive_argument
@click.option("-k", "--keyword", "keywords", multiple=True, help="Keyword (repeatable, OR).")
@time_filter_options
@click.option(
    "--limit",
    default=DEFAULT_SEARCH_LIMIT,
    type=click.IntRange(min=1),
    help=f"Maximum sessions to return (default: {DEFAULT_SEARCH_LIMIT}).",
)
@click.option(
    "--preview",
    "preview_count",
    default=DEFAULT_PREVIEW_COUNT,
    type=click.IntRange(min=0),
    help=f"Preview messages per session (default: {DEFAULT_PREVIEW_COUNT}).",
)
@json_option
def search_cmd(
    database, keywords, start, end, year, month, day, hour, limit, preview_count, as_json
):
    """Search sessions in DATABASE by keyword and time range."""
    time_filter = resolve_time_filter(start, end, year, month, day, hour)
    results = search_sessions(
        database,
        keywords=list(keywords),
        time_filter=time_filter,
        limit=limit,
        preview_count=preview_count,
    )
    if as_json:
        echo_json(results)
        return

    if not results:
        click.echo("No matching sessions.")
        return

    for session in results:
        click.echo(format_session_header(session))
        for message in session["preview_messages"]:
            click.echo(format_message_line(message))
        if not session["is_complete"]:
            hidden = session["message_count"] - len(session["preview_messages"])
            click.echo(f"  ... {hidden} more")


def _pick_session(database):
    sessions = get_sessions(database)
    if not sessions:
        raise click.ClickException("No sessions found. Run 'chatlens segment' first.")

    choices = [
        questionary.Choice(title=format_session_header(session), value=session["id"])
        for session in reversed(sessions)
    ]
    selected = questionary.select("Select a session:", choices=choices).ask()
    if selected is None:
        raise click.ClickException("No session selected.")
    return selected


@click.command("show")
@archive_argument
@click.argument("session_ids", nargs=-1, type=int)
@click.option(
    "--limit",
    default=CLI_SESSION_MESSAGES_LIMIT,
    type=click.IntRange(min=1),
    help=f"Maximum messages for a single session (default: {CLI_SESSION_MESSAGES_LIMIT}).",
)
@json_option
def show_cmd(database, session_ids, limit, as_json):
    """Show the messages of one or more sessions.

    Without SESSION_IDS, pick a session interactively. With several ids,
    every message of every session is shown.
    """
    if not session_ids:
        session_ids = (_pick_session(database),)

    if len(session_ids) > 1:
        result = get_multiple_sessions_messages(database, list(session_ids))
        if as_json:
            echo_json(result)
        else:
            echo_blocks(result)
        return

    result = get_session_messages(database, session_ids[0], limit=limit)
    if result is None:
        raise click.ClickException(f"Session not found: {session_ids[0]}")

    if as_json:
        echo_json(result)
        return

    click.echo(
        format_session_header({**result, "id": result["session_id"]})
        + f"  participants: {', '.join(result['participants'])}"
    )
    for message in result["messages"]:
        click.echo(format_message_line(message))
    if result["returned_count"] < result["message_count"]:
        click.echo(f"... truncated at {result['returned_count']} messages")


@click.command("summary")
@archive_argument
@click.argument("session_id", type=int)
@click.argument("text", required=False)
def summary_cmd(database, session_id, text):
    """Show or attach the summary of a session."""
    if text is None:
        summary = get_session_summary(database, session_id)
        click.echo(summary if summary else "(no summary)")
        return

    with cli_errors():
        updated = save_session_summary(database, session_id, text)
    if not updated:
        raise click.ClickException(f"Session not found: {session_id}")
    click.echo(f"Summary saved for session {session_id}")


@click.command("summaries")
@archive_argument
@click.option("-k", "--keyword", "keywords", multiple=True, help="Keyword (repeatable, OR).")
@time_filter_options
@click.option(
    "--limit",
    default=DEFAULT_SEARCH_LIMIT,
    type=click.IntRange(min=1),
    help=f"Maximum sessions to return (default: {DEFAULT_SEARCH_LIMIT}).",
)
@json_option
def summaries_cmd(database, keywords, start, end, year, month, day, hour, limit, as_json):
    """List summarized sessions, newest first."""
    time_filter = resolve_time_filter(start, end, year, month, day, hour)
    results = search_session_summaries(
        database, keywords=list(keywords), time_filter=time_filter, limit=limit
    )
    if as_json:
        echo_json(results)
        return

    if not results:
        click.echo("No summaries found.")
        return

    for session in results:
        click.echo(format_session_header(session))
        click.echo(f"  {session['summary']}")
