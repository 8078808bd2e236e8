"""SQLite-backed stores for signing keys and revoked certificate identifiers."""

import logging
import sqlite3
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class _SQLiteStore:
    """Shared connection handling for the stores."""

    def __init__(self, db_path: str | Path = "verifier.db"):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        # Cycles may run on a worker thread; SyncEngine serializes access.
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._create_tables()

    def _create_tables(self):
        raise NotImplementedError

    def close(self):
        """Close the database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class KeyStore(_SQLiteStore):
    """Mapping from key identifier (KID) to encrypted key material."""

    def _create_tables(self):
        """Create database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS keys (
                kid TEXT PRIMARY KEY,
                material BLOB NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self.conn.commit()

    def put(self, kid: str, material: bytes):
        """Insert or overwrite the material for a KID."""
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO keys (kid, material) VALUES (?, ?)",
                (kid, material),
            )

    def get(self, kid: str) -> bytes | None:
        """Get stored material for a KID, or None if unknown."""
        row = self.conn.execute("SELECT material FROM keys WHERE kid = ?", (kid,)).fetchone()
        return bytes(row[0]) if row else None

    def kids(self) -> set[str]:
        """Get all stored KIDs."""
        return {row[0] for row in self.conn.execute("SELECT kid FROM keys")}

    def delete_all_except(self, kids: Iterable[str]) -> int:
        """Delete every entry whose KID is not in ``kids``.

        Args:
            kids: KIDs to keep

        Returns:
            Number of deleted entries
        """
        stale = self.kids() - set(kids)
        if stale:
            with self.conn:
                self.conn.executemany("DELETE FROM keys WHERE kid = ?", [(k,) for k in stale])
            logger.info(f"Pruned {len(stale)} stale keys")
        return len(stale)

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM keys").fetchone()[0]

    def clear(self):
        """Delete all keys."""
        with self.conn:
            self.conn.execute("DELETE FROM keys")


class RevocationStore(_SQLiteStore):
    """Set of revoked certificate identifiers."""

    def _create_tables(self):
        """Create database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS revoked (
                id TEXT PRIMARY KEY
            )
        """)
        self.conn.commit()

    def apply_batch(self, insertions: Iterable[str] = (), deletions: Iterable[str] = ()):
        """Apply one chunk's insertions then deletions in a single transaction.

        Deletions run after insertions, so an id present in both ends up
        absent. Either the whole batch lands or none of it does.

        Args:
            insertions: Identifiers to add (duplicates are no-ops)
            deletions: Identifiers to remove (missing ids are no-ops)
        """
        with self.conn:
            self.conn.executemany(
                "INSERT OR IGNORE INTO revoked (id) VALUES (?)",
                [(i,) for i in insertions],
            )
            self.conn.executemany(
                "DELETE FROM revoked WHERE id = ?",
                [(i,) for i in deletions],
            )

    def contains(self, identifier: str) -> bool:
        """Check whether an identifier is revoked."""
        row = self.conn.execute("SELECT 1 FROM revoked WHERE id = ?", (identifier,)).fetchone()
        return row is not None

    def __contains__(self, identifier: str) -> bool:
        return self.contains(identifier)

    def identifiers(self) -> set[str]:
        return {row[0] for row in self.conn.execute("SELECT id FROM revoked")}

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM revoked").fetchone()[0]

    def clear(self):
        """Delete all revoked identifiers."""
        with self.conn:
            self.conn.execute("DELETE FROM revoked")
