"""Tests for gap-based session segmentation."""

import pytest

from chatlens import (
    SchemaMissing,
    StorageUnavailable,
    create_archive_schema,
    generate_sessions,
    get_sessions,
    has_session_index,
    segment_messages,
    set_gap_threshold,
)
from chatlens.archive import has_cached_reader
from chatlens.archive.schema import create_session_index_tables

from conftest import MESSAGES, T0, make_messages, query_archive


class TestSegmentMessages:
    """Tests for the pure forward scan."""

    def test_empty_stream_yields_no_sessions(self):
        assert segment_messages([], 1800) == []

    def test_single_message_is_one_session(self):
        sessions = segment_messages([(1, 100)], 1800)
        assert sessions == [{"start_ts": 100, "end_ts": 100, "message_ids": [1]}]

    def test_gap_equal_to_threshold_stays_in_session(self):
        sessions = segment_messages([(1, 0), (2, 1800)], 1800)
        assert len(sessions) == 1
        assert sessions[0]["message_ids"] == [1, 2]

    def test_gap_above_threshold_splits(self):
        sessions = segment_messages([(1, 0), (2, 1801)], 1800)
        assert [s["message_ids"] for s in sessions] == [[1], [2]]

    def test_equal_timestamps_never_split(self):
        """Messages sharing a timestamp join one session even with threshold 0."""
        sessions = segment_messages([(1, 50), (2, 50), (3, 50)], 0)
        assert len(sessions) == 1
        assert sessions[0]["message_ids"] == [1, 2, 3]

    def test_zero_threshold_splits_on_any_gap(self):
        sessions = segment_messages([(1, 50), (2, 51), (3, 51)], 0)
        assert [s["message_ids"] for s in sessions] == [[1], [2, 3]]

    def test_start_and_end_ts(self):
        rows = [(1, 10), (2, 20), (3, 30), (4, 5000), (5, 5100)]
        sessions = segment_messages(rows, 100)
        assert [(s["start_ts"], s["end_ts"]) for s in sessions] == [
            (10, 30),
            (5000, 5100),
        ]

    def test_gap_measured_between_consecutive_messages(self):
        """A long session of short gaps is not split by its total length."""
        rows = [(i, i * 1000) for i in range(1, 11)]
        sessions = segment_messages(rows, 1000)
        assert len(sessions) == 1
        assert sessions[0]["end_ts"] - sessions[0]["start_ts"] == 9000

    def test_accepts_generator(self):
        rows = ((i, i * 10) for i in range(5))
        assert len(segment_messages(rows, 10)) == 1

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            segment_messages([(1, 0)], -1)

    def test_non_integer_threshold_rejected(self):
        with pytest.raises(ValueError):
            segment_messages([(1, 0)], "1800")


class TestGenerateSessions:
    """Tests for rebuilding the session index of an archive."""

    def test_returns_session_count(self, sample_archive):
        assert generate_sessions(sample_archive) == 3

    def test_every_message_in_exactly_one_session(self, sample_archive):
        generate_sessions(sample_archive)

        rows = query_archive(
            sample_archive,
            "SELECT message_id, COUNT(*) FROM message_context GROUP BY message_id",
        )
        assert sorted(r[0] for r in rows) == [m["id"] for m in MESSAGES]
        assert all(r[1] == 1 for r in rows)

    def test_session_rows(self, sample_archive):
        generate_sessions(sample_archive)

        rows = query_archive(
            sample_archive,
            """
            SELECT id, start_ts, end_ts, message_count, is_manual, summary
            FROM chat_session ORDER BY id
            """,
        )
        assert rows == [
            (1, T0, T0 + 600, 4, False, None),
            (2, T0 + 2401, T0 + 2500, 2, False, None),
            (3, T0 + 10000, T0 + 10000, 1, False, None),
        ]

    def test_message_count_matches_assignments(self, sample_archive):
        generate_sessions(sample_archive)

        rows = query_archive(
            sample_archive,
            """
            SELECT cs.message_count, COUNT(mc.message_id)
            FROM chat_session cs
            JOIN message_context mc ON mc.session_id = cs.id
            GROUP BY cs.id, cs.message_count
            """,
        )
        assert all(expected == actual for expected, actual in rows)

    def test_topic_id_is_null(self, sample_archive):
        generate_sessions(sample_archive)

        rows = query_archive(
            sample_archive, "SELECT COUNT(*) FROM message_context WHERE topic_id IS NOT NULL"
        )
        assert rows[0][0] == 0

    def test_rerun_is_idempotent(self, sample_archive):
        generate_sessions(sample_archive)
        first = [(s["start_ts"], s["end_ts"], s["message_count"]) for s in get_sessions(sample_archive)]

        generate_sessions(sample_archive)
        second = [(s["start_ts"], s["end_ts"], s["message_count"]) for s in get_sessions(sample_archive)]

        assert first == second
        rows = query_archive(sample_archive, "SELECT COUNT(*) FROM message_context")
        assert rows[0][0] == len(MESSAGES)

    def test_gap_threshold_boundary(self, make_archive):
        db_path = make_archive(messages=make_messages([0, 1800, 3601]))

        assert generate_sessions(db_path, gap_threshold=1800) == 2
        sessions = get_sessions(db_path)
        assert [s["message_count"] for s in sessions] == [2, 1]

    def test_orders_by_timestamp_not_id(self, make_archive):
        """Ids are not monotonic in time; ordering uses (ts, id)."""
        messages = [
            {"id": 1, "sender_id": 1, "ts": 5000, "content": "late"},
            {"id": 2, "sender_id": 1, "ts": 0, "content": "early"},
            {"id": 3, "sender_id": 1, "ts": 100, "content": "early too"},
        ]
        db_path = make_archive(messages=messages)

        generate_sessions(db_path, gap_threshold=1800)

        sessions = get_sessions(db_path)
        assert [(s["start_ts"], s["message_count"]) for s in sessions] == [(0, 2), (5000, 1)]
        assert sessions[0]["first_message_id"] == 2

    def test_different_threshold_changes_partition(self, sample_archive):
        assert generate_sessions(sample_archive, gap_threshold=100_000) == 1
        assert generate_sessions(sample_archive, gap_threshold=60) == 5

    def test_uses_stored_threshold(self, sample_archive):
        set_gap_threshold(sample_archive, 100_000)
        assert generate_sessions(sample_archive) == 1

    def test_empty_archive_yields_zero_sessions(self, make_archive):
        db_path = make_archive(messages=[])
        assert generate_sessions(db_path) == 0
        assert has_session_index(db_path) is False

    def test_empty_archive_clears_stale_index(self, make_archive):
        db_path = make_archive(messages=[])
        conn = create_archive_schema(db_path)
        conn.execute("INSERT INTO chat_session VALUES (1, 0, 10, 2, FALSE, NULL)")
        conn.close()

        assert generate_sessions(db_path) == 0
        assert has_session_index(db_path) is False

    def test_clears_previous_summaries(self, sample_archive):
        generate_sessions(sample_archive)
        conn = create_archive_schema(sample_archive)
        conn.execute("UPDATE chat_session SET summary = 'old'")
        conn.close()

        generate_sessions(sample_archive)

        assert all(s["summary"] is None for s in get_sessions(sample_archive))

    def test_invalid_threshold_rejected(self, sample_archive):
        with pytest.raises(ValueError):
            generate_sessions(sample_archive, gap_threshold=-5)


class TestProgressCallback:
    """Tests for progress reporting during a rebuild."""

    def test_reports_every_hundred_sessions_and_completion(self, make_archive):
        db_path = make_archive(messages=make_messages([i * 10_000 for i in range(250)]))
        calls = []

        count = generate_sessions(
            db_path, gap_threshold=1800, progress_callback=lambda c, t: calls.append((c, t))
        )

        assert count == 250
        assert calls == [(100, 250), (200, 250), (250, 250)]

    def test_exact_multiple_reports_completion_once(self, make_archive):
        db_path = make_archive(messages=make_messages([i * 10_000 for i in range(200)]))
        calls = []

        generate_sessions(
            db_path, gap_threshold=1800, progress_callback=lambda c, t: calls.append((c, t))
        )

        assert calls == [(100, 200), (200, 200)]

    @pytest.mark.parametrize("message_count", [3, 150])
    def test_failing_callback_does_not_abort_rebuild(self, make_archive, message_count):
        db_path = make_archive(
            messages=make_messages([i * 10_000 for i in range(message_count)])
        )

        def explode(current, total):
            raise RuntimeError("display closed")

        count = generate_sessions(db_path, gap_threshold=1800, progress_callback=explode)

        assert count == message_count
        assert len(get_sessions(db_path)) == message_count

    def test_small_run_reports_completion_only(self, sample_archive):
        calls = []
        generate_sessions(sample_archive, progress_callback=lambda c, t: calls.append((c, t)))
        assert calls == [(3, 3)]

    def test_callback_does_not_change_result(self, sample_archive):
        generate_sessions(sample_archive, progress_callback=lambda c, t: None)
        with_callback = get_sessions(sample_archive)
        generate_sessions(sample_archive)
        assert get_sessions(sample_archive) == with_callback


class TestGenerateSessionsErrors:
    """Tests for failure handling during a rebuild."""

    def test_missing_archive_raises_storage_unavailable(self, tmp_path):
        with pytest.raises(StorageUnavailable):
            generate_sessions(tmp_path / "missing.duckdb")

    def test_missing_index_tables_raise_schema_missing(self, make_archive):
        db_path = make_archive(with_session_index=False)
        with pytest.raises(SchemaMissing):
            generate_sessions(db_path)

    def test_failed_rebuild_leaves_no_partial_index(self, make_archive):
        """A missing message_context table aborts the rebuild atomically."""
        db_path = make_archive(with_session_index=False)
        conn = create_archive_schema(db_path, with_session_index=False)
        create_session_index_tables(conn)
        conn.execute("INSERT INTO chat_session VALUES (42, 0, 10, 2, FALSE, 'previous')")
        conn.execute("DROP TABLE message_context")
        conn.close()

        with pytest.raises(SchemaMissing):
            generate_sessions(db_path)

        rows = query_archive(db_path, "SELECT id, summary FROM chat_session")
        assert rows == [(42, "previous")]

    def test_missing_message_table_raises_schema_missing(self, make_archive):
        db_path = make_archive()
        conn = create_archive_schema(db_path)
        conn.execute("DROP TABLE message")
        conn.close()

        with pytest.raises(SchemaMissing):
            generate_sessions(db_path)


class TestReaderInvalidation:
    """Tests for closing the cached reader before writing."""

    def test_rebuild_closes_cached_reader(self, sample_archive):
        assert has_session_index(sample_archive) is False
        assert has_cached_reader(sample_archive)

        generate_sessions(sample_archive)

        assert not has_cached_reader(sample_archive)
        assert has_session_index(sample_archive) is True

    def test_reads_after_rebuild_see_new_index(self, sample_archive):
        generate_sessions(sample_archive, gap_threshold=100_000)
        assert len(get_sessions(sample_archive)) == 1

        generate_sessions(sample_archive, gap_threshold=1800)
        assert len(get_sessions(sample_archive)) == 3
