"""Archive connection management.

Read paths share one cached read-only connection per archive. Write paths
go through ``open_writer``, which closes that cached reader before opening
an exclusive read-write connection: DuckDB will not open a file read-write
while a read-only connection to it is alive in the same process, and a
reader kept across a rebuild would serve the pre-rebuild index.
"""

from contextlib import contextmanager
from pathlib import Path

import duckdb
from loguru import logger

from ..config import FETCH_BATCH_SIZE
from ..errors import SchemaMissing, StorageUnavailable

# archive path -> read-only connection
_readers = {}


def _archive_key(db_path):
    return str(Path(db_path).expanduser().resolve())


def get_reader(db_path):
    """Return the cached read-only connection for an archive, opening it if needed.

    Raises:
        StorageUnavailable: If the archive does not exist or cannot be opened
    """
    key = _archive_key(db_path)
    conn = _readers.get(key)
    if conn is not None:
        return conn

    if not Path(key).is_file():
        raise StorageUnavailable(f"Archive not found: {key}")

    try:
        conn = duckdb.connect(key, read_only=True)
    except duckdb.Error as e:
        raise StorageUnavailable(f"Cannot open archive {key}: {e}") from e

    _readers[key] = conn
    logger.debug("Opened read-only connection to {}", key)
    return conn


def close_archive(db_path):
    """Close and forget the cached reader for an archive (no-op if none)."""
    key = _archive_key(db_path)
    conn = _readers.pop(key, None)
    if conn is not None:
        conn.close()
        logger.debug("Closed read-only connection to {}", key)


def close_all_archives():
    """Close every cached reader."""
    for key in list(_readers):
        close_archive(key)


def has_cached_reader(db_path):
    return _archive_key(db_path) in _readers


@contextmanager
def open_writer(db_path):
    """Open an exclusive read-write connection to an existing archive.

    The cached reader is closed first. The connection is closed on exit.

    Raises:
        StorageUnavailable: If the archive does not exist or cannot be opened
    """
    close_archive(db_path)
    key = _archive_key(db_path)

    if not Path(key).is_file():
        raise StorageUnavailable(f"Archive not found: {key}")

    try:
        conn = duckdb.connect(key)
    except duckdb.Error as e:
        raise StorageUnavailable(f"Cannot open archive {key} for writing: {e}") from e

    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn):
    """Run the enclosed statements in one transaction; roll back on any error."""
    conn.begin()
    try:
        yield conn
        conn.commit()
    except Exception:
        try:
            conn.rollback()
        except duckdb.TransactionException as rollback_error:
            logger.debug("Rollback skipped, no active transaction: {}", rollback_error)
        raise


def translate_write_error(e, db_path):
    """Map a DuckDB error raised on a write path to the chatlens taxonomy."""
    if isinstance(e, duckdb.CatalogException):
        return SchemaMissing(f"Archive {db_path} is missing a required table: {e}")
    if isinstance(e, duckdb.IOException):
        return StorageUnavailable(f"Archive {db_path} is not writable: {e}")
    return e


def log_read_failure(operation, db_path, e):
    """Log a swallowed read-path failure.

    A missing table means the archive has not been segmented yet, which is
    a normal state and only worth a debug record.
    """
    if isinstance(e, duckdb.CatalogException):
        logger.debug("{}: session tables not available in {} ({})", operation, db_path, e)
    else:
        logger.error("{} failed for {}: {}", operation, db_path, e)


def fetch_dicts(conn, query, params=()):
    """Execute a query and return rows as a list of dicts."""
    cursor = conn.execute(query, list(params))
    columns = [col[0] for col in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def fetch_one_dict(conn, query, params=()):
    """Execute a query and return the first row as a dict, or None."""
    cursor = conn.execute(query, list(params))
    row = cursor.fetchone()
    if row is None:
        return None
    columns = [col[0] for col in cursor.description]
    return dict(zip(columns, row))


def iter_rows(conn, query, params=(), batch_size=FETCH_BATCH_SIZE):
    """Stream query rows as tuples in batches of ``batch_size``."""
    cursor = conn.execute(query, list(params))
    while True:
        rows = cursor.fetchmany(batch_size)
        if not rows:
            break
        yield from rows


def table_exists(conn, table_name):
    result = conn.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
        [table_name],
    ).fetchone()
    return bool(result and result[0])
