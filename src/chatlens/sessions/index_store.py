"""Session index persistence: clearing, status, gap threshold and summaries.

Reads go through the archive's cached reader and return empty values when
the archive or its session tables are missing. Writes close that reader
first and raise on failure.
"""

import duckdb
from loguru import logger

from ..archive.connection import (
    fetch_dicts,
    fetch_one_dict,
    get_reader,
    log_read_failure,
    open_writer,
    transaction,
    translate_write_error,
)
from ..config import DEFAULT_GAP_THRESHOLD
from ..errors import StorageUnavailable


def _run_write(db_path, statements):
    """Execute (sql, params) pairs on an exclusive writer in one transaction.

    Returns:
        Row count reported by the last statement
    """
    affected = 0
    with open_writer(db_path) as conn:
        try:
            with transaction(conn):
                for sql, params in statements:
                    result = conn.execute(sql, params).fetchone()
                    affected = result[0] if result else 0
        except duckdb.Error as e:
            translated = translate_write_error(e, db_path)
            if translated is e:
                raise
            raise translated from e
    return affected


def clear_sessions(db_path):
    """Delete every chat_session and message_context row of an archive.

    Raises:
        StorageUnavailable: If the archive cannot be opened for writing
        SchemaMissing: If the session tables are absent
    """
    _run_write(
        db_path,
        [
            ("DELETE FROM message_context", []),
            ("DELETE FROM chat_session", []),
        ],
    )
    logger.info("Cleared session index for {}", db_path)


def has_session_index(db_path):
    """Return True if the archive has at least one generated session."""
    try:
        conn = get_reader(db_path)
        result = conn.execute("SELECT COUNT(*) FROM chat_session").fetchone()
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("has_session_index", db_path, e)
        return False
    return bool(result and result[0] > 0)


def validate_gap_threshold(gap_threshold):
    if isinstance(gap_threshold, bool) or not isinstance(gap_threshold, int):
        raise ValueError(f"Gap threshold must be an integer, got {gap_threshold!r}")
    if gap_threshold < 0:
        raise ValueError(f"Gap threshold must be >= 0, got {gap_threshold}")


def get_gap_threshold(db_path):
    """Return the archive's gap threshold, or the default when unset."""
    try:
        conn = get_reader(db_path)
        row = conn.execute("SELECT session_gap_threshold FROM meta LIMIT 1").fetchone()
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_gap_threshold", db_path, e)
        return DEFAULT_GAP_THRESHOLD

    if row is None or row[0] is None:
        return DEFAULT_GAP_THRESHOLD
    return row[0]


def set_gap_threshold(db_path, gap_threshold):
    """Store the archive's gap threshold.

    Args:
        db_path: Path to the archive
        gap_threshold: Seconds, or None to fall back to the default

    Raises:
        ValueError: If gap_threshold is not a non-negative integer
        StorageUnavailable: If the archive cannot be opened for writing
        SchemaMissing: If the meta table is absent
    """
    if gap_threshold is not None:
        validate_gap_threshold(gap_threshold)

    # Archives imported without metadata get a meta row on first update
    _run_write(
        db_path,
        [
            (
                """
                INSERT INTO meta (session_gap_threshold)
                SELECT NULL WHERE NOT EXISTS (SELECT 1 FROM meta)
                """,
                [],
            ),
            ("UPDATE meta SET session_gap_threshold = ?", [gap_threshold]),
        ],
    )
    logger.info("Set gap threshold for {} to {}", db_path, gap_threshold)


def save_session_summary(db_path, session_id, summary):
    """Attach summary text to a session.

    Returns:
        True if the session exists and was updated

    Raises:
        StorageUnavailable: If the archive cannot be opened for writing
        SchemaMissing: If the chat_session table is absent
    """
    updated = _run_write(
        db_path,
        [("UPDATE chat_session SET summary = ? WHERE id = ?", [summary, session_id])],
    )
    return updated > 0


def get_session_summary(db_path, session_id):
    """Return a session's summary text, or None."""
    try:
        conn = get_reader(db_path)
        row = conn.execute(
            "SELECT summary FROM chat_session WHERE id = ?", [session_id]
        ).fetchone()
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_session_summary", db_path, e)
        return None

    if row is None or not row[0]:
        return None
    return row[0]


def get_session_stats(db_path):
    """Return session count, index presence and the effective gap threshold."""
    session_count = 0
    try:
        conn = get_reader(db_path)
        result = conn.execute("SELECT COUNT(*) FROM chat_session").fetchone()
        session_count = result[0] if result else 0
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_session_stats", db_path, e)

    return {
        "session_count": session_count,
        "has_index": session_count > 0,
        "gap_threshold": get_gap_threshold(db_path),
    }


def get_sessions(db_path):
    """List every session in chronological order for timeline navigation.

    Returns:
        List of dicts with id, start_ts, end_ts, message_count, summary and
        first_message_id (smallest message id in the session)
    """
    try:
        conn = get_reader(db_path)
        return fetch_dicts(
            conn,
            """
            SELECT
                cs.id,
                cs.start_ts,
                cs.end_ts,
                cs.message_count,
                cs.summary,
                (SELECT MIN(mc.message_id) FROM message_context mc
                 WHERE mc.session_id = cs.id) AS first_message_id
            FROM chat_session cs
            ORDER BY cs.start_ts ASC, cs.id ASC
            """,
        )
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_sessions", db_path, e)
        return []


def get_session(db_path, session_id):
    """Point read of one session row, or None if it does not exist."""
    try:
        conn = get_reader(db_path)
        return fetch_one_dict(
            conn,
            """
            SELECT id, start_ts, end_ts, message_count, is_manual, summary
            FROM chat_session
            WHERE id = ?
            """,
            [session_id],
        )
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("get_session", db_path, e)
        return None
