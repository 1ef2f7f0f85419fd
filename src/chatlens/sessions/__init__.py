"""Conversation sessions derived from an archive's message stream.

This package provides:
- Gap-based segmentation and full index rebuilds
- Session index persistence (clear, status, gap threshold, summaries)
- Session search and retrieval queries
"""

from .index_store import (
    clear_sessions,
    get_gap_threshold,
    get_session,
    get_session_stats,
    get_session_summary,
    get_sessions,
    has_session_index,
    save_session_summary,
    set_gap_threshold,
    validate_gap_threshold,
)
from .query import (
    get_multiple_sessions_messages,
    get_session_messages,
    search_session_summaries,
    search_sessions,
)
from .segmenter import generate_sessions, segment_messages

__all__ = [
    # Segmentation
    "generate_sessions",
    "segment_messages",
    # Index store
    "clear_sessions",
    "get_gap_threshold",
    "get_session",
    "get_session_stats",
    "get_session_summary",
    "get_sessions",
    "has_session_index",
    "save_session_summary",
    "set_gap_threshold",
    "validate_gap_threshold",
    # Queries
    "get_multiple_sessions_messages",
    "get_session_messages",
    "search_session_summaries",
    "search_sessions",
]
