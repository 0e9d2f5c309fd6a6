"""
Database connection and entry store operations.
"""

import hashlib
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from settings import get_setting
from .exceptions import EntriesError, NotFoundError, ForeignKeyError, TransactionFailure
from .models import Base, Entry, ContentRecord


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def compute_content_hash(content: str) -> str:
    """Compute SHA-256 hash of entry content."""
    return hashlib.sha256(content.encode('utf-8')).hexdigest()


class Database:
    """Database manager for the entries tracker."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ':memory:'.
                If None, uses ENTRIES_DB_PATH from settings.
        """
        if db_path is None:
            db_path = get_setting('ENTRIES_DB_PATH', 'data/entries.db')

        self.db_path = str(db_path)

        if self.db_path == ':memory:':
            # One shared connection, otherwise every session sees an empty database
            self.engine = create_engine(
                'sqlite://',
                connect_args={'check_same_thread': False},
                poolclass=StaticPool,
                echo=False
            )
        else:
            # Ensure data directory exists
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(f'sqlite:///{self.db_path}', echo=False)

        event.listen(self.engine, 'connect', _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Create tables if they don't exist
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self):
        """
        All-or-nothing scope for one producer call.

        Commits when the block exits normally. Any exception rolls back every
        write made in the block and is re-raised; storage errors are wrapped
        in TransactionFailure.

        Example:
            >>> with db.transaction() as session:
            ...     db.upsert_entry(session, 'notes/a.md', at)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except EntriesError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            raise TransactionFailure(f"Transaction rolled back: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self):
        """Close all pooled connections."""
        self.engine.dispose()

    # ============================================
    # ENTRIES
    # ============================================

    def find_entry(self, session: Session, path: str) -> Optional[Entry]:
        """Get entry by path, or None."""
        return session.get(Entry, path)

    def get_entry(self, session: Session, path: str) -> Entry:
        """
        Get entry by path.

        Raises:
            NotFoundError: If the path is unknown
        """
        entry = self.find_entry(session, path)
        if entry is None:
            raise NotFoundError(path)
        return entry

    def require_entry(self, session: Session, path: str) -> Entry:
        """Get entry for a dependent write (content record, vote)."""
        entry = self.find_entry(session, path)
        if entry is None:
            raise ForeignKeyError(path)
        return entry

    def upsert_entry(self, session: Session, path: str, at: datetime) -> Entry:
        """
        Get existing entry or create new one.

        A new entry starts as not deleted with added_at = updated_at = at.
        An existing entry only gets its updated_at bumped; a deleted entry
        stays deleted.

        Args:
            session: Database session
            path: Entry path
            at: Timestamp of the observation

        Returns:
            Entry object
        """
        if not path:
            raise ValueError("Entry path must not be empty")

        entry = self.find_entry(session, path)
        if entry is None:
            entry = Entry(path=path, deleted=0, added_at=at, updated_at=at)
            session.add(entry)
            session.flush()
        else:
            entry.touch(at)
        return entry

    def mark_deleted(self, session: Session, path: str, at: datetime) -> Entry:
        """
        Soft-delete an entry and append a tombstone to its content history.

        Raises:
            NotFoundError: If the path is unknown
        """
        entry = self.get_entry(session, path)
        if not entry.is_deleted:
            entry.mark_deleted(at)
            session.add(ContentRecord(path=path, content=None, content_hash=None, at=at))
            session.flush()
        return entry

    def list_entries(self, session: Session, include_deleted: bool = False) -> List[Entry]:
        """List entries ordered by path."""
        query = session.query(Entry)
        if not include_deleted:
            query = query.filter(Entry.deleted == 0)
        return query.order_by(Entry.path).all()

    # ============================================
    # CONTENT HISTORY
    # ============================================

    def content_history(self, session: Session, path: str) -> List[ContentRecord]:
        """Content records for a path, oldest first."""
        self.get_entry(session, path)
        return (session.query(ContentRecord)
                .filter(ContentRecord.path == path)
                .order_by(ContentRecord.at, ContentRecord.id)
                .all())

    def current_content(self, session: Session, path: str) -> Optional[ContentRecord]:
        """Record with the latest `at` (latest insert wins a tie), or None."""
        return (session.query(ContentRecord)
                .filter(ContentRecord.path == path)
                .order_by(ContentRecord.at.desc(), ContentRecord.id.desc())
                .first())

    def add_content(
        self,
        session: Session,
        path: str,
        at: datetime,
        content: Optional[str] = None,
        content_hash: Optional[str] = None
    ) -> Optional[ContentRecord]:
        """
        Append a content record for an existing entry.

        When only content is given its SHA-256 is computed. A record whose
        hash matches the current record is not written again.

        Args:
            session: Database session
            path: Entry path (must exist)
            at: Timestamp of the snapshot
            content: Full content (optional)
            content_hash: Precomputed hash (optional)

        Returns:
            The new ContentRecord, or None when the content is unchanged

        Raises:
            ForeignKeyError: If the path is unknown
            ValueError: If neither content nor hash is given
        """
        if content is None and content_hash is None:
            raise ValueError("Either content or content_hash is required")

        self.require_entry(session, path)

        if content_hash is None:
            content_hash = compute_content_hash(content)

        current = self.current_content(session, path)
        if current is not None and current.content_hash == content_hash:
            return None

        record = ContentRecord(path=path, content=content, content_hash=content_hash, at=at)
        session.add(record)
        try:
            session.flush()
        except IntegrityError as e:
            raise ForeignKeyError(path, f"Content for '{path}' rejected: {e.orig}") from e
        return record
