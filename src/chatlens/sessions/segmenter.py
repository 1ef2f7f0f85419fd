"""Gap-based session segmentation.

Messages are scanned once in (ts, id) order. A message opens a new session
when it is the first one or when it arrived more than ``gap_threshold``
seconds after the previous message; otherwise it joins the current
session. Rebuilds always replace the whole index.
"""

import time

import duckdb
from loguru import logger

from ..archive.connection import (
    iter_rows,
    open_writer,
    transaction,
    translate_write_error,
)
from ..config import PROGRESS_INTERVAL
from .index_store import get_gap_threshold, validate_gap_threshold


def segment_messages(rows, gap_threshold):
    """Partition an ordered message stream into sessions.

    Args:
        rows: Iterable of (message_id, ts) pairs ordered by (ts, id)
        gap_threshold: Largest gap in seconds that keeps two consecutive
            messages in the same session

    Returns:
        List of dicts with start_ts, end_ts and message_ids, in order
    """
    validate_gap_threshold(gap_threshold)

    sessions = []
    current = None
    prev_ts = None

    for message_id, ts in rows:
        if prev_ts is None or ts - prev_ts > gap_threshold:
            current = {"start_ts": ts, "end_ts": ts, "message_ids": []}
            sessions.append(current)
        current["end_ts"] = max(current["end_ts"], ts)
        current["message_ids"].append(message_id)
        prev_ts = ts

    return sessions


def generate_sessions(db_path, gap_threshold=None, progress_callback=None):
    """Rebuild the session index of an archive.

    Clearing the old index and writing the new one happen in a single
    transaction, so a failed run leaves no partial index behind.

    Args:
        db_path: Path to the archive
        gap_threshold: Seconds; defaults to the archive's stored threshold
        progress_callback: Optional callback(current, total) called every
            PROGRESS_INTERVAL sessions and once when done. Exceptions it
            raises are logged and do not affect the rebuild.

    Returns:
        Number of sessions written

    Raises:
        StorageUnavailable: If the archive cannot be opened for writing
        SchemaMissing: If a required table is absent
        ValueError: If gap_threshold is invalid
    """
    if gap_threshold is None:
        gap_threshold = get_gap_threshold(db_path)
    validate_gap_threshold(gap_threshold)

    start_time = time.time()
    with open_writer(db_path) as conn:
        try:
            rows = iter_rows(conn, "SELECT id, ts FROM message ORDER BY ts, id")
            sessions = segment_messages(rows, gap_threshold)
            _write_session_index(conn, sessions, progress_callback)
        except duckdb.Error as e:
            translated = translate_write_error(e, db_path)
            if translated is e:
                raise
            raise translated from e

    session_count = len(sessions)
    _report_progress(progress_callback, session_count, session_count)

    logger.info(
        "Generated {} sessions for {} (gap {}s) in {:.2f}s",
        session_count,
        db_path,
        gap_threshold,
        time.time() - start_time,
    )
    return session_count


def _report_progress(progress_callback, current, total):
    """Invoke the progress callback; its failures are logged, never raised."""
    if not progress_callback:
        return
    try:
        progress_callback(current, total)
    except Exception:
        logger.exception("Progress callback failed at {}/{}", current, total)


def _write_session_index(conn, sessions, progress_callback=None):
    """Replace chat_session/message_context rows inside one transaction.

    Sessions are numbered 1..N in chronological order.
    """
    total = len(sessions)

    with transaction(conn):
        conn.execute("DELETE FROM message_context")
        conn.execute("DELETE FROM chat_session")

        for batch_start in range(0, total, PROGRESS_INTERVAL):
            batch = sessions[batch_start : batch_start + PROGRESS_INTERVAL]
            session_rows = []
            context_rows = []
            for offset, session in enumerate(batch):
                session_id = batch_start + offset + 1
                session_rows.append(
                    (
                        session_id,
                        session["start_ts"],
                        session["end_ts"],
                        len(session["message_ids"]),
                    )
                )
                context_rows.extend(
                    (message_id, session_id) for message_id in session["message_ids"]
                )

            conn.executemany(
                """
                INSERT INTO chat_session
                    (id, start_ts, end_ts, message_count, is_manual, summary)
                VALUES (?, ?, ?, ?, FALSE, NULL)
                """,
                session_rows,
            )
            conn.executemany(
                """
                INSERT INTO message_context (message_id, session_id, topic_id)
                VALUES (?, ?, NULL)
                """,
                context_rows,
            )

            processed = batch_start + len(batch)
            # the final (total, total) report is sent once the rebuild is done
            if processed % PROGRESS_INTERVAL == 0 and processed < total:
                _report_progress(progress_callback, processed, total)
