"""Full message rows shared by context filtering and multi-session retrieval.

Replies point at another message's ``platform_message_id`` (the external
identifier), never at its internal ``id``. When several messages share an
external identifier, the one with the smallest internal id is the target.
"""

from ..archive.members import parse_aliases, sender_name_sql


def full_message_query(where_clause="", join_clause=""):
    """Build the SELECT for fully resolved messages in (ts, id) order."""
    return f"""
        WITH reply_target AS (
            SELECT platform_message_id, content, sender_id
            FROM message
            WHERE platform_message_id IS NOT NULL
            QUALIFY row_number() OVER (
                PARTITION BY platform_message_id ORDER BY id
            ) = 1
        )
        SELECT
            msg.id,
            msg.ts,
            msg.sender_id,
            {sender_name_sql("m")} AS sender_name,
            m.platform_id AS sender_platform_id,
            m.aliases AS sender_aliases_json,
            m.avatar AS sender_avatar,
            msg.content,
            msg.type,
            msg.reply_to_message_id,
            reply.content AS reply_to_content,
            {sender_name_sql("reply_m")} AS reply_to_sender_name
        FROM message msg
        {join_clause}
        LEFT JOIN member m ON m.id = msg.sender_id
        LEFT JOIN reply_target reply
            ON reply.platform_message_id = msg.reply_to_message_id
        LEFT JOIN member reply_m ON reply_m.id = reply.sender_id
        {where_clause}
        ORDER BY msg.ts ASC, msg.id ASC
    """


def to_block_message(row, is_hit):
    """Convert a full message row into the message dict used in blocks.

    NULL content becomes "". An alias list that fails to parse becomes [].
    """
    return {
        "id": row["id"],
        "sender_id": row.get("sender_id"),
        "sender_name": row.get("sender_name"),
        "sender_platform_id": row.get("sender_platform_id"),
        "sender_aliases": parse_aliases(row.get("sender_aliases_json")),
        "sender_avatar": row.get("sender_avatar"),
        "content": row.get("content") or "",
        "timestamp": row["ts"],
        "type": row.get("type"),
        "reply_to_message_id": row.get("reply_to_message_id"),
        "reply_to_content": row.get("reply_to_content"),
        "reply_to_sender_name": row.get("reply_to_sender_name"),
        "is_hit": is_hit,
    }


def empty_filter_result():
    return {
        "blocks": [],
        "stats": {"total_messages": 0, "hit_messages": 0, "total_chars": 0},
    }
