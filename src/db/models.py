"""
SQLAlchemy models for the entries tracker.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, JSON, Float, CheckConstraint, event
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# Ranking logs live in their own database
LogBase = declarative_base()


class VoteDirection(enum.IntEnum):
    """Stored value of a pairwise vote."""
    LEFT = 1       # left entry preferred
    RIGHT = -1     # right entry preferred
    SKIP = 0       # compared, no preference

    @classmethod
    def parse(cls, value) -> "VoteDirection":
        """Accept a VoteDirection, an int or a name ('left', 'right', 'skip')."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown vote direction '{value}'")
        if isinstance(value, bool):
            raise ValueError(f"Unknown vote direction {value!r}")
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Unknown vote direction {value!r}")


class Entry(Base):
    """Tracked item, identified by its path. Never hard-deleted."""
    __tablename__ = 'entries'

    path = Column(String(1024), primary_key=True)
    deleted = Column(Integer, nullable=False, default=0, index=True)  # 0=no, 1=yes (SQLite doesn't have native boolean)
    added_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False, index=True)

    @property
    def is_deleted(self) -> bool:
        return bool(self.deleted)

    def touch(self, at: datetime):
        """Bump updated_at; never moves it backwards."""
        if self.updated_at is None or at > self.updated_at:
            self.updated_at = at

    def mark_deleted(self, at: datetime):
        """Soft-delete the entry. Votes and content history are kept."""
        self.deleted = 1
        self.touch(at)

    def __repr__(self):
        state = ' deleted' if self.is_deleted else ''
        return f"<Entry(path='{self.path}'{state})>"


class ContentRecord(Base):
    """Snapshot of an entry's content (blob and/or hash) at a point in time."""
    __tablename__ = 'content_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(1024), ForeignKey('entries.path'), nullable=False)
    content = Column(Text, nullable=True)            # NULL when only the hash is known
    content_hash = Column(String(64), nullable=True)  # SHA-256 hex; both NULL = tombstone
    at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_content_history_path_at', 'path', 'at'),
    )

    @property
    def is_tombstone(self) -> bool:
        return self.content is None and self.content_hash is None

    def __repr__(self):
        digest = self.content_hash[:12] if self.content_hash else 'none'
        return f"<ContentRecord(path='{self.path}', hash={digest}, at={self.at})>"


class Vote(Base):
    """Pairwise comparison. Append-only: corrections are new votes."""
    __tablename__ = 'votes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    left_path = Column(String(1024), ForeignKey('entries.path'), nullable=False)
    right_path = Column(String(1024), ForeignKey('entries.path'), nullable=False)
    vote = Column(Integer, nullable=False)  # +1 left preferred, -1 right preferred, 0 skip
    at = Column(DateTime, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint('left_path <> right_path', name='ck_votes_distinct_paths'),
        CheckConstraint('vote IN (-1, 0, 1)', name='ck_votes_value'),
        Index('idx_votes_left_path', 'left_path'),
        Index('idx_votes_right_path', 'right_path'),
    )

    def __repr__(self):
        return f"<Vote(id={self.id}, left='{self.left_path}', right='{self.right_path}', vote={self.vote:+d}, at={self.at})>"


@event.listens_for(Vote, 'before_update')
def _votes_are_append_only(mapper, connection, target):
    raise ValueError(f"Vote {target.id} is immutable; record a new vote instead")


@event.listens_for(ContentRecord, 'before_update')
def _content_history_is_append_only(mapper, connection, target):
    raise ValueError(f"Content record {target.id} is immutable; append a new record instead")


class RankingExecution(LogBase):
    """Log of full ranking rebuilds, kept in the separate logs database."""
    __tablename__ = 'ranking_executions'

    id = Column(Integer, primary_key=True)

    # Execution metadata
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    trigger = Column(String(50), nullable=True)  # 'rerank', 'refresh', 'startup'

    # Input statistics
    total_entries = Column(Integer, nullable=True)
    deleted_entries = Column(Integer, nullable=True)
    total_votes = Column(Integer, nullable=True)
    skip_votes = Column(Integer, nullable=True)
    voted_pairs = Column(Integer, nullable=True)     # Distinct unordered pairs with at least one vote
    resolved_pairs = Column(Integer, nullable=True)  # Pairs with nonzero net preference

    # Results statistics
    entries_ranked = Column(Integer, nullable=True)
    uncompared_entries = Column(Integer, nullable=True)
    min_score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=True)
    mean_score = Column(Float, nullable=True)
    median_score = Column(Float, nullable=True)
    std_dev_score = Column(Float, nullable=True)

    # Top entries (for quick reference)
    top_entries = Column(JSON, nullable=True)  # [{"path": "...", "score": 3}, ...]

    # Success/error tracking
    success = Column(Integer, nullable=False, default=1, index=True)  # 1=success, 0=error
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        status = 'success' if self.success else 'error'
        duration = f"{self.duration_seconds:.2f}s" if self.duration_seconds is not None else 'N/A'
        return f"<RankingExecution(id={self.id}, entries={self.entries_ranked}, votes={self.total_votes}, duration={duration}, status={status})>"
