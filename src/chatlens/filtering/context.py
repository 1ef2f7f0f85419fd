"""Context-aware message filtering.

Core algorithm:
1. Walk the time-ordered messages and record the positions of hits
2. Expand every hit into a window of ``context_size`` messages per side
3. Merge overlapping or adjacent windows into disjoint ranges
4. Materialize one block of messages per merged range

Positions, not message ids, drive the windows, so the context of a hit is
always its neighbours in the ordered stream.
"""

import duckdb
from loguru import logger

from ..archive.connection import fetch_dicts, get_reader, log_read_failure
from ..config import DEFAULT_CONTEXT_SIZE
from ..errors import StorageUnavailable
from .messages import empty_filter_result, full_message_query, to_block_message


def _normalize_keywords(keywords):
    if not keywords:
        return []
    return [keyword.lower() for keyword in keywords if keyword]


def _is_hit(message, keywords, sender_ids):
    # keywords are lowercased, sender_ids is a set or None
    if keywords:
        content = (message.get("content") or "").lower()
        if not any(keyword in content for keyword in keywords):
            return False
    if sender_ids and message.get("sender_id") not in sender_ids:
        return False
    return True


def message_matches(message, keywords=None, sender_ids=None):
    """Return True if a message passes every criterion that is present.

    Args:
        message: Dict with at least "content" and "sender_id"
        keywords: Keywords matched case-insensitively against content (OR)
        sender_ids: Sender ids the message must come from

    Empty or missing criteria are ignored, so a message with no criteria
    at all is a hit.
    """
    return _is_hit(
        message,
        _normalize_keywords(keywords),
        set(sender_ids) if sender_ids else None,
    )


def find_hit_indexes(messages, keywords=None, sender_ids=None):
    """Return the positions of matching messages in ascending order."""
    keywords = _normalize_keywords(keywords)
    sender_ids = set(sender_ids) if sender_ids else None
    return [
        index
        for index, message in enumerate(messages)
        if _is_hit(message, keywords, sender_ids)
    ]


def merge_context_ranges(hit_indexes, total, context_size):
    """Expand hits into context windows and merge them.

    Each hit ``i`` covers ``[max(0, i - context_size), min(total - 1, i +
    context_size)]``. A window is merged into the previous range when it
    starts at most one position after that range ends.

    Args:
        hit_indexes: Hit positions
        total: Number of messages in the stream
        context_size: Messages of context on each side of a hit

    Returns:
        List of dicts with start, end (inclusive positions) and hit_indexes
    """
    if context_size < 0:
        raise ValueError(f"context_size must be >= 0, got {context_size}")

    ranges = []
    for hit_index in sorted(hit_indexes):
        start = max(0, hit_index - context_size)
        end = min(total - 1, hit_index + context_size)

        if ranges and start <= ranges[-1]["end"] + 1:
            last_range = ranges[-1]
            last_range["end"] = max(last_range["end"], end)
            last_range["hit_indexes"].append(hit_index)
            continue

        ranges.append({"start": start, "end": end, "hit_indexes": [hit_index]})
    return ranges


def build_context_blocks(messages, ranges):
    """Materialize merged ranges into blocks with aggregate stats.

    Args:
        messages: Ordered message rows (see ``full_message_query``)
        ranges: Output of ``merge_context_ranges``

    Returns:
        dict with "blocks" and "stats" (total_messages, hit_messages,
        total_chars)
    """
    result = empty_filter_result()
    stats = result["stats"]

    for merged in ranges:
        hit_set = set(merged["hit_indexes"])
        block_messages = []
        for index in range(merged["start"], merged["end"] + 1):
            message = to_block_message(messages[index], index in hit_set)
            block_messages.append(message)
            stats["total_chars"] += len(message["content"])

        result["blocks"].append(
            {
                "start_ts": messages[merged["start"]]["ts"],
                "end_ts": messages[merged["end"]]["ts"],
                "messages": block_messages,
                "hit_count": len(hit_set),
            }
        )
        stats["total_messages"] += len(block_messages)
        stats["hit_messages"] += len(hit_set)

    return result


def filter_messages_with_context(
    db_path,
    keywords=None,
    time_filter=None,
    sender_ids=None,
    context_size=DEFAULT_CONTEXT_SIZE,
):
    """Find matching messages and return them with surrounding context.

    Args:
        db_path: Path to the archive
        keywords: Optional keywords (OR, case-insensitive substring)
        time_filter: Optional {"start_ts", "end_ts"} applied before matching
        sender_ids: Optional sender ids a hit must come from
        context_size: Messages of context on each side of a hit

    Returns:
        dict with "blocks" and "stats"; empty blocks and zero stats when
        nothing matches or the archive cannot be read
    """
    if context_size < 0:
        raise ValueError(f"context_size must be >= 0, got {context_size}")

    where_clause = ""
    params = []
    if time_filter:
        where_clause = "WHERE msg.ts >= ? AND msg.ts <= ?"
        params = [time_filter["start_ts"], time_filter["end_ts"]]

    try:
        conn = get_reader(db_path)
        messages = fetch_dicts(conn, full_message_query(where_clause), params)
    except (StorageUnavailable, duckdb.Error) as e:
        log_read_failure("filter_messages_with_context", db_path, e)
        return empty_filter_result()

    hit_indexes = find_hit_indexes(messages, keywords, sender_ids)
    if not hit_indexes:
        return empty_filter_result()

    ranges = merge_context_ranges(hit_indexes, len(messages), context_size)
    result = build_context_blocks(messages, ranges)
    logger.debug(
        "Filter matched {} of {} messages in {} blocks",
        len(hit_indexes),
        len(messages),
        len(result["blocks"]),
    )
    return result
