"""Archive storage: schema, connections and the member directory.

This package provides:
- DuckDB schema creation for message archives
- Raw row loaders for members and messages
- Cached read-only connections and exclusive writers
- Member lookup and display-name resolution
"""

from .connection import (
    close_all_archives,
    close_archive,
    fetch_dicts,
    fetch_one_dict,
    get_reader,
    has_cached_reader,
    iter_rows,
    open_writer,
    table_exists,
    transaction,
)
from .members import (
    find_members,
    get_member,
    parse_aliases,
    resolve_display_name,
    sender_name_sql,
)
from .schema import (
    create_archive_schema,
    create_session_index_tables,
    insert_members,
    insert_messages,
    insert_meta,
)

__all__ = [
    # Schema
    "create_archive_schema",
    "create_session_index_tables",
    "insert_members",
    "insert_messages",
    "insert_meta",
    # Connections
    "close_all_archives",
    "close_archive",
    "fetch_dicts",
    "fetch_one_dict",
    "get_reader",
    "has_cached_reader",
    "iter_rows",
    "open_writer",
    "table_exists",
    "transaction",
    # Members
    "find_members",
    "get_member",
    "parse_aliases",
    "resolve_display_name",
    "sender_name_sql",
]
