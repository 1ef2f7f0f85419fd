"""Context filter and member directory commands."""

import click

from ..archive import find_members, get_member
from ..config import CLI_CONTEXT_SIZE
from ..filtering import filter_messages_with_context
from .utils import (
    archive_argument,
    cli_errors,
    echo_blocks,
    echo_json,
    json_option,
    resolve_time_filter,
    time_filter_options,
)


def resolve_sender_ids(database, senders):
    """Map --sender values to member ids.

    All-digit values naming an existing member are taken as member ids.
    Anything else, including numeric platform ids, is searched in the
    member directory (nickname, account name, platform id, aliases).
    """
    sender_ids = []
    for sender in senders:
        if sender.isdigit() and get_member(database, int(sender)) is not None:
            sender_ids.append(int(sender))
            continue
        matches = find_members(database, search=sender)
        if not matches:
            raise click.BadParameter(f"No member matches '{sender}'", param_hint="--sender")
        sender_ids.extend(member["id"] for member in matches)
    return sender_ids


@click.command("filter")
@archive_argument
@click.option("-k", "--keyword", "keywords", multiple=True, help="Keyword (repeatable, OR).")
@click.option(
    "-s",
    "--sender",
    "senders",
    multiple=True,
    help="Member id or name (repeatable).",
)
@click.option(
    "-c",
    "--context",
    "context_size",
    default=CLI_CONTEXT_SIZE,
    type=click.IntRange(min=0),
    help=f"Messages of context on each side of a hit (default: {CLI_CONTEXT_SIZE}).",
)
@time_filter_options
@json_option
def filter_cmd(
    database, keywords, senders, context_size, start, end, year, month, day, hour, as_json
):
    """Find messages in DATABASE and show them with surrounding context.

    Hits must match any keyword and come from one of the senders (when
    given). Overlapping context windows are merged into blocks.

    Examples:

        chatlens filter chat.duckdb -k dinner -k lunch

        chatlens chat.duckdb -s alice --year 2024 -c 5
    """
    time_filter = resolve_time_filter(start, end, year, month, day, hour)
    sender_ids = resolve_sender_ids(database, senders)

    with cli_errors():
        result = filter_messages_with_context(
            database,
            keywords=list(keywords),
            time_filter=time_filter,
            sender_ids=sender_ids,
            context_size=context_size,
        )

    if as_json:
        echo_json(result)
        return

    if not result["blocks"]:
        click.echo("No matching messages.")
        return
    echo_blocks(result)


@click.command("members")
@archive_argument
@click.option("--search", help="Filter by nickname, account name, platform id or alias.")
@json_option
def members_cmd(database, search, as_json):
    """List the members of DATABASE."""
    members = find_members(database, search=search)
    if as_json:
        echo_json(members)
        return

    if not members:
        click.echo("No members found.")
        return

    for member in members:
        line = f"{member['id']:>6}  {member['display_name']}"
        if member["platform_id"] and member["platform_id"] != member["display_name"]:
            line += f"  ({member['platform_id']})"
        if member["aliases"]:
            line += f"  aka {', '.join(member['aliases'])}"
        click.echo(line)
