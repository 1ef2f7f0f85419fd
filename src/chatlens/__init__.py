"""Segment chat archives into conversation sessions and filter messages with context."""

# Archive storage imports
from .archive import (
    close_all_archives,
    close_archive,
    create_archive_schema,
    find_members,
    get_member,
    insert_members,
    insert_messages,
    insert_meta,
    parse_aliases,
    resolve_display_name,
)

# Session imports
from .sessions import (
    clear_sessions,
    generate_sessions,
    get_gap_threshold,
    get_multiple_sessions_messages,
    get_session,
    get_session_messages,
    get_session_stats,
    get_session_summary,
    get_sessions,
    has_session_index,
    save_session_summary,
    search_session_summaries,
    search_sessions,
    segment_messages,
    set_gap_threshold,
)

# Filtering imports
from .filtering import (
    build_context_blocks,
    filter_messages_with_context,
    find_hit_indexes,
    merge_context_ranges,
    message_matches,
)

from .config import (
    DEFAULT_CONTEXT_SIZE,
    DEFAULT_GAP_THRESHOLD,
    DEFAULT_PREVIEW_COUNT,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SESSION_MESSAGES_LIMIT,
)
from .errors import ChatArchiveError, SchemaMissing, StorageUnavailable
from .timefilter import build_time_filter, parse_datetime

# CLI imports
from .cli import cli, main

__all__ = [
    # Archive
    "close_all_archives",
    "close_archive",
    "create_archive_schema",
    "find_members",
    "get_member",
    "insert_members",
    "insert_messages",
    "insert_meta",
    "parse_aliases",
    "resolve_display_name",
    # Sessions
    "clear_sessions",
    "generate_sessions",
    "get_gap_threshold",
    "get_multiple_sessions_messages",
    "get_session",
    "get_session_messages",
    "get_session_stats",
    "get_session_summary",
    "get_sessions",
    "has_session_index",
    "save_session_summary",
    "search_session_summaries",
    "search_sessions",
    "segment_messages",
    "set_gap_threshold",
    # Filtering
    "build_context_blocks",
    "filter_messages_with_context",
    "find_hit_indexes",
    "merge_context_ranges",
    "message_matches",
    # Config
    "DEFAULT_CONTEXT_SIZE",
    "DEFAULT_GAP_THRESHOLD",
    "DEFAULT_PREVIEW_COUNT",
    "DEFAULT_SEARCH_LIMIT",
    "DEFAULT_SESSION_MESSAGES_LIMIT",
    # Errors
    "ChatArchiveError",
    "SchemaMissing",
    "StorageUnavailable",
    # Time filters
    "build_time_filter",
    "parse_datetime",
    # CLI
    "cli",
    "main",
]
