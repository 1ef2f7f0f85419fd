"""Archive schema DDL and raw row loaders.

One archive is one DuckDB file holding a single conversation:
- meta: Archive metadata and the per-archive session gap threshold
- member: Member directory (display-name fields and aliases)
- message: The ordered message stream
- chat_session: Session index (derived, rebuilt by segmentation)
- message_context: Message to session assignment (derived)

No hard PK/FK constraints are used. The session index is rebuilt with a
delete-then-insert inside one transaction, which DuckDB's eager
constraint checks would reject on a primary key.
"""

import json

import duckdb

MESSAGE_STORE_TABLES = ("meta", "member", "message")
SESSION_INDEX_TABLES = ("chat_session", "message_context")


def create_archive_schema(db_path, with_session_index=True):
    """Create (or open) a DuckDB archive with the chatlens tables.

    Existing tables are kept, so this is safe to call on an archive that
    already holds messages.

    Args:
        db_path: Path to the DuckDB database file
        with_session_index: Whether to create the session index tables

    Returns:
        duckdb.Connection to the database
    """
    conn = duckdb.connect(str(db_path))

    # Archive metadata
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            name VARCHAR,
            platform VARCHAR,
            chat_type VARCHAR,
            imported_at BIGINT,
            session_gap_threshold INTEGER
        )
    """
    )

    # Member directory
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS member (
            id INTEGER,
            platform_id VARCHAR,
            account_name VARCHAR,
            group_nickname VARCHAR,
            aliases VARCHAR DEFAULT '[]',
            avatar VARCHAR
        )
    """
    )

    # Messages
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS message (
            id INTEGER,
            platform_message_id VARCHAR,
            sender_id INTEGER,
            ts BIGINT,
            type INTEGER DEFAULT 0,
            content TEXT,
            reply_to_message_id VARCHAR
        )
    """
    )

    if with_session_index:
        create_session_index_tables(conn)

    return conn


def create_session_index_tables(conn):
    """Create the chat_session and message_context tables if missing."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_session (
            id INTEGER,
            start_ts BIGINT,
            end_ts BIGINT,
            message_count INTEGER,
            is_manual BOOLEAN DEFAULT FALSE,
            summary TEXT
        )
    """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS message_context (
            message_id INTEGER,
            session_id INTEGER,
            topic_id INTEGER
        )
    """
    )


def insert_members(conn, members):
    """Insert member rows.

    Args:
        conn: DuckDB connection
        members: Iterable of dicts with keys id, platform_id and optionally
            account_name, group_nickname, aliases (list or JSON string), avatar

    Returns:
        Number of rows inserted
    """
    rows = []
    for member in members:
        aliases = member.get("aliases", [])
        if not isinstance(aliases, str):
            aliases = json.dumps(list(aliases), ensure_ascii=False)
        rows.append(
            (
                member["id"],
                member.get("platform_id"),
                member.get("account_name"),
                member.get("group_nickname"),
                aliases,
                member.get("avatar"),
            )
        )

    if rows:
        conn.executemany(
            """
            INSERT INTO member
                (id, platform_id, account_name, group_nickname, aliases, avatar)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def insert_messages(conn, messages):
    """Insert message rows.

    Args:
        conn: DuckDB connection
        messages: Iterable of dicts with keys id, sender_id, ts and optionally
            platform_message_id, type, content, reply_to_message_id

    Returns:
        Number of rows inserted
    """
    rows = [
        (
            message["id"],
            message.get("platform_message_id"),
            message["sender_id"],
            message["ts"],
            message.get("type", 0),
            message.get("content"),
            message.get("reply_to_message_id"),
        )
        for message in messages
    ]

    if rows:
        conn.executemany(
            """
            INSERT INTO message
                (id, platform_message_id, sender_id, ts, type, content,
                 reply_to_message_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def insert_meta(conn, name=None, platform=None, chat_type=None, imported_at=None):
    """Insert the archive's single meta row."""
    conn.execute(
        """
        INSERT INTO meta (name, platform, chat_type, imported_at, session_gap_threshold)
        VALUES (?, ?, ?, ?, NULL)
        """,
        [name, platform, chat_type, imported_at],
    )
