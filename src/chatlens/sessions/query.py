"""Read-side queries over the session index.

Every function here is total: storage failures are logged and turned into
an empty result (``[]``, ``None`` or an empty filter result).
"""

import duckdb
from loguru import logger

from ..archive.connection import fetch_dicts, get_reader, log_read_failure
from ..archive.members import sender_name_sql
from ..config import (
    DEFAULT_PREVIEW_COUNT,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SESSION_MESSAGES_LIMIT,
)
from ..errors import StorageUnavailable
from ..filtering.messages import (
    empty_filter_result,
    full_message_query,
    to_block_message,
)
from .index_store import get_session

SESSION_MESSAGES_SQL = f"""
    SELECT
        m.id,
        {sender_name_sql("mb")} AS sender_name,
        m.content,
        m.ts AS timestamp
    FROM message_context mc
    JOIN message m ON m.id = mc.message_id
    LEFT JOIN member mb ON mb.id = m.sender_id
    WHERE mc.session_id = ?
    ORDER BY m.ts ASC, m.id ASC
    LIMIT ?
"""


def _keyword_condition(column, keywords):
    """Case-insensitive OR substring condition and its parameters."""
    keywords = [keyword.lower() for keyword in keywords or [] if keyword]
    if not keywords:
        return None, []
    condition = " OR ".join(f"contains(lower({column}), ?)" for _ in keywords)
    return f"({condition})", keywords


def search_sessions(
    db_path,
    keywords=None,
    time_filter=None,
    limit=DEFAULT_SEARCH_LIMIT,
    preview_count=DEFAULT_PREVIEW_COUNT,
):
    """Search sessions by keyword and time range.

    A session matches the time filter only when it lies entirely inside it,
    and matches the keywords when at least one of its messages contains
    any keyword.

    Args:
        db_path: Path to the archive
        keywords: Optional keywords (OR, case-insensitive)
        time_filter: Optional {"start_ts", "end_ts"}
        limit: Maximum number of sessions
        preview_count: Messages included in each preview

    Returns:
        List of session dicts, newest first, each with preview_messages and
        is_complete (True when the preview holds the whole session)
    """
    sql = """
        SELECT cs.id, cs.start_ts, cs.end_ts, cs.message_count
        FROM chat_session cs
        WHERE 1=1
    """
    params = []

    if time_filter:
        sql += " AND cs.start_ts >= ? AND cs.end_ts <= ?"
        params.extend([time_filter["start_ts"], time_filter["end_ts"]])

    condition, keyword_params = _keyword_condition("m.content", keywords)
    if condition:
        sql += f"""
            AND cs.id IN (
                SELECT DISTINCT mc.session_id
                FROM message_context mc
                JOIN message m ON m.id = mc.message_id
                WHERE {condition}
            )
        """
        params.extend(keyword_params)

    sql += " ORDER BY cs.start_ts DESC, cs.id DESC LIMIT ?"
    params.append(limit)

    try:
        conn = get_reader(db_path)
        sessions = fetch_dicts(conn, sql, params)
        results = []
        for session in sessions:
            preview = fetch_dicts(conn, SESSION_MESSAGES_SQL, [session["id"], preview_count])
            results.append(
                {
                    **session,
                    "is_complete": session["message_count"] <= preview_count,
                    "preview_messages": preview,
                }
            )
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("search_sessions", db_path, e)
        return []

    return results


def get_session_messages(db_path, session_id, limit=DEFAULT_SESSION_MESSAGES_LIMIT):
    """Return one session's metadata, participants and messages.

    Args:
        db_path: Path to the archive
        session_id: Session id in the index
        limit: Maximum number of messages returned

    Returns:
        dict with session_id, start_ts, end_ts, message_count,
        returned_count, participants and messages; None if the session
        does not exist
    """
    session = get_session(db_path, session_id)
    if session is None:
        return None

    try:
        conn = get_reader(db_path)
        messages = fetch_dicts(conn, SESSION_MESSAGES_SQL, [session_id, limit])
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_session_messages", db_path, e)
        return None

    participants = []
    for message in messages:
        name = message["sender_name"]
        if name is not None and name not in participants:
            participants.append(name)

    return {
        "session_id": session["id"],
        "start_ts": session["start_ts"],
        "end_ts": session["end_ts"],
        "message_count": session["message_count"],
        "returned_count": len(messages),
        "participants": participants,
        "messages": messages,
    }


def get_multiple_sessions_messages(db_path, session_ids):
    """Return every message of several sessions, one block per session.

    Blocks are ordered by session start. There is no hit concept in this
    mode: every message has is_hit False and every block hit_count 0. The
    result has the same shape as ``filter_messages_with_context``.

    Unknown session ids are skipped.
    """
    session_ids = list(dict.fromkeys(session_ids or []))
    if not session_ids:
        return empty_filter_result()

    placeholders = ", ".join("?" for _ in session_ids)
    sessions_sql = f"""
        SELECT id, start_ts, end_ts, message_count
        FROM chat_session
        WHERE id IN ({placeholders})
        ORDER BY start_ts ASC, id ASC
    """
    messages_sql = full_message_query(
        where_clause="WHERE mc.session_id = ?",
        join_clause="JOIN message_context mc ON mc.message_id = msg.id",
    )

    result = empty_filter_result()
    stats = result["stats"]
    try:
        conn = get_reader(db_path)
        for session in fetch_dicts(conn, sessions_sql, session_ids):
            rows = fetch_dicts(conn, messages_sql, [session["id"]])
            messages = [to_block_message(row, False) for row in rows]
            result["blocks"].append(
                {
                    "start_ts": session["start_ts"],
                    "end_ts": session["end_ts"],
                    "messages": messages,
                    "hit_count": 0,
                }
            )
            stats["total_messages"] += len(messages)
            stats["total_chars"] += sum(len(m["content"]) for m in messages)
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_multiple_sessions_messages", db_path, e)
        return empty_filter_result()

    logger.debug(
        "Loaded {} sessions ({} messages) from {}",
        len(result["blocks"]),
        stats["total_messages"],
        db_path,
    )
    return result


def search_session_summaries(
    db_path, keywords=None, time_filter=None, limit=DEFAULT_SEARCH_LIMIT
):
    """List summarized sessions, newest first.

    Args:
        db_path: Path to the archive
        keywords: Optional keywords matched against the summary (OR,
            case-insensitive)
        time_filter: Optional {"start_ts", "end_ts"}; sessions must lie
            entirely inside it
        limit: Maximum number of sessions

    Returns:
        List of dicts with id, start_ts, end_ts, message_count and summary
    """
    sql = """
        SELECT id, start_ts, end_ts, message_count, summary
        FROM chat_session
        WHERE summary IS NOT NULL AND summary <> ''
    """
    params = []

    if time_filter:
        sql += " AND start_ts >= ? AND end_ts <= ?"
        params.extend([time_filter["start_ts"], time_filter["end_ts"]])

    condition, keyword_params = _keyword_condition("summary", keywords)
    if condition:
        sql += f" AND {condition}"
        params.extend(keyword_params)

    sql += " ORDER BY start_ts DESC, id DESC LIMIT ?"
    params.append(limit)

    try:
        return fetch_dicts(get_reader(db_path), sql, params)
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("search_session_summaries", db_path, e)
        return []
