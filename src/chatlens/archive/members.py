"""Member directory lookups and sender display-name resolution."""

import json

import duckdb

from .connection import fetch_dicts, fetch_one_dict, get_reader, log_read_failure
from ..errors import StorageUnavailable


def sender_name_sql(alias):
    """SQL expression resolving a member's display name.

    Precedence: group nickname, account name, platform id. Empty strings
    are skipped like NULLs.
    """
    return (
        f"COALESCE(NULLIF({alias}.group_nickname, ''), "
        f"NULLIF({alias}.account_name, ''), {alias}.platform_id)"
    )


def resolve_display_name(group_nickname, account_name, platform_id):
    """Python counterpart of ``sender_name_sql``."""
    for candidate in (group_nickname, account_name):
        if candidate:
            return candidate
    return platform_id


def parse_aliases(raw):
    """Decode a stored alias list.

    Returns an empty list for NULL, malformed JSON, or anything that is not
    a JSON list. Non-string entries are dropped.
    """
    if not raw:
        return []
    try:
        aliases = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    if not isinstance(aliases, list):
        return []
    return [alias for alias in aliases if isinstance(alias, str)]


def _member_from_row(row):
    return {
        "id": row["id"],
        "platform_id": row["platform_id"],
        "account_name": row["account_name"],
        "group_nickname": row["group_nickname"],
        "display_name": resolve_display_name(
            row["group_nickname"], row["account_name"], row["platform_id"]
        ),
        "aliases": parse_aliases(row["aliases"]),
        "avatar": row["avatar"],
    }


_MEMBER_COLUMNS = "id, platform_id, account_name, group_nickname, aliases, avatar"


def get_member(db_path, member_id):
    """Look up one member by internal id.

    Returns:
        Member dict, or None if the member or the archive is missing
    """
    try:
        conn = get_reader(db_path)
        row = fetch_one_dict(
            conn,
            f"SELECT {_MEMBER_COLUMNS} FROM member WHERE id = ? LIMIT 1",
            [member_id],
        )
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_member", db_path, e)
        return None

    return _member_from_row(row) if row else None


def find_members(db_path, search=None):
    """List members, optionally filtered by a case-insensitive search term.

    The term is matched against group nickname, account name, platform id
    and every alias.

    Returns:
        List of member dicts ordered by id
    """
    try:
        conn = get_reader(db_path)
        rows = fetch_dicts(conn, f"SELECT {_MEMBER_COLUMNS} FROM member ORDER BY id")
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("find_members", db_path, e)
        return []

    members = [_member_from_row(row) for row in rows]
    if not search:
        return members

    needle = search.lower()
    matched = []
    for member in members:
        fields = [
            member["group_nickname"],
            member["account_name"],
            member["platform_id"],
            *member["aliases"],
        ]
        if any(field and needle in field.lower() for field in fields):
            matched.append(member)
    return matched
