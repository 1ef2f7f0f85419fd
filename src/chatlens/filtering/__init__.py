"""Context-aware filtering of archive messages.

This package provides:
- Keyword / sender matching over the ordered message stream
- Context window expansion and interval merging
- Block materialization with hit annotations and aggregate stats
"""

from .context import (
    build_context_blocks,
    filter_messages_with_context,
    find_hit_indexes,
    merge_context_ranges,
    message_matches,
)
from .messages import empty_filter_result, full_message_query, to_block_message

__all__ = [
    "build_context_blocks",
    "filter_messages_with_context",
    "find_hit_indexes",
    "merge_context_ranges",
    "message_matches",
    "empty_filter_result",
    "full_message_query",
    "to_block_message",
]
