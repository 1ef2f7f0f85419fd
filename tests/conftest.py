"""Pytest configuration and fixtures for chatlens tests."""

import duckdb
import pytest
from loguru import logger

from chatlens import (
    close_all_archives,
    create_archive_schema,
    insert_members,
    insert_messages,
    insert_meta,
)

T0 = 1_700_000_000

MEMBERS = [
    {
        "id": 1,
        "platform_id": "u-alice",
        "account_name": "Alice",
        "group_nickname": "Ally",
        "aliases": ["A", "Al"],
        "avatar": "alice.png",
    },
    {
        "id": 2,
        "platform_id": "u-bob",
        "account_name": "Bob",
        "group_nickname": None,
        "aliases": [],
    },
    {
        "id": 3,
        "platform_id": "u-carol",
        "account_name": None,
        "group_nickname": "",
        "aliases": "not json",
    },
]

# Three sessions at the default 1800s threshold: {1-4}, {5, 6}, {7}
MESSAGES = [
    {"id": 1, "platform_message_id": "m1", "sender_id": 1, "ts": T0, "content": "Hello World"},
    {"id": 2, "platform_message_id": "m2", "sender_id": 2, "ts": T0 + 60, "content": "hi alice, lunch today?"},
    {
        "id": 3,
        "platform_message_id": "m3",
        "sender_id": 1,
        "ts": T0 + 120,
        "content": "Sure, LUNCH at noon",
        "reply_to_message_id": "m2",
    },
    {"id": 4, "platform_message_id": "m4", "sender_id": 3, "ts": T0 + 600, "content": None, "type": 1},
    {"id": 5, "platform_message_id": "m5", "sender_id": 2, "ts": T0 + 2401, "content": "weekend plans?"},
    {"id": 6, "platform_message_id": "m6", "sender_id": 1, "ts": T0 + 2500, "content": "hiking maybe"},
    {"id": 7, "platform_message_id": "m7", "sender_id": 2, "ts": T0 + 10000, "content": "good night"},
]


@pytest.fixture(autouse=True)
def close_cached_readers():
    """Close cached archive readers and drop log sinks after every test."""
    yield
    close_all_archives()
    logger.remove()


@pytest.fixture
def make_archive(tmp_path):
    """Factory creating a DuckDB archive file from member and message dicts."""

    def _make(
        messages=None,
        members=None,
        name="archive.duckdb",
        with_session_index=True,
        with_meta=True,
    ):
        db_path = tmp_path / name
        conn = create_archive_schema(db_path, with_session_index=with_session_index)
        if with_meta:
            insert_meta(conn, name="Test chat", platform="test", chat_type="group")
        insert_members(conn, MEMBERS if members is None else members)
        insert_messages(conn, MESSAGES if messages is None else messages)
        conn.close()
        return db_path

    return _make


@pytest.fixture
def sample_archive(make_archive):
    """Archive holding MEMBERS and MESSAGES, not yet segmented."""
    return make_archive()


def make_messages(timestamps, sender_id=1, content="msg"):
    """Build message dicts with ids 1..n for the given timestamps."""
    return [
        {
            "id": index,
            "platform_message_id": f"p{index}",
            "sender_id": sender_id,
            "ts": ts,
            "content": f"{content} {index}",
        }
        for index, ts in enumerate(timestamps, 1)
    ]


def query_archive(db_path, sql, params=()):
    """Run a query on a separate read-only connection."""
    close_all_archives()
    conn = duckdb.connect(str(db_path), read_only=True)
    try:
        return conn.execute(sql, list(params)).fetchall()
    finally:
        conn.close()
