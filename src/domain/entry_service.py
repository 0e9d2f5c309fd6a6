"""
Producer and consumer entry points.

Producers (directory sync, importers, the CLI) submit entries, content and
votes; consumers read pages of the ranked order. Every producer call is one
transaction. The score table is kept in memory and only advanced after a
successful commit; reads fold in any vote rows appended since the last read
(by this or another process) and rebuild from scratch when the log no longer
matches the table.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from db.database import Database
from db.exceptions import NotFoundError
from db.models import Entry, ContentRecord, Vote
from db.vote_log import record_vote, votes_for_pair, iter_votes, vote_log_state, PairVote
from domain.entry_rank import EntryRankCalculator, RankedEntry
from domain.execution_log import log_ranking_execution


class EntryService:
    """Entries tracker facade over the entry store, vote log and ranking."""

    def __init__(self, db: Database, log_db_path: Optional[str] = None):
        """
        Args:
            db: Database instance
            log_db_path: Logs database for ranking rebuilds (None disables logging)
        """
        self.db = db
        self.log_db_path = log_db_path
        self._calculator: Optional[EntryRankCalculator] = None

    @staticmethod
    def _timestamp(at: Optional[datetime]) -> datetime:
        """Naive UTC timestamp, as stored; None means now."""
        if at is None:
            return datetime.utcnow()
        if at.tzinfo is not None:
            return at.astimezone(timezone.utc).replace(tzinfo=None)
        return at

    # ============================================
    # PRODUCERS
    # ============================================

    def submit_entry(
        self,
        path: str,
        content: Optional[str] = None,
        at: Optional[datetime] = None,
        content_hash: Optional[str] = None
    ) -> Entry:
        """
        Create or refresh an entry and append its content, atomically.

        Unknown paths are created. Content identical to the current snapshot
        is not stored twice, so repeating a call only bumps updated_at.
        """
        at = self._timestamp(at)
        with self.db.transaction() as session:
            entry = self.db.upsert_entry(session, path, at)
            if content is not None or content_hash is not None:
                self.db.add_content(session, path, at, content=content, content_hash=content_hash)
        return entry

    def submit_vote(self, left_path: str, right_path: str, direction, at: Optional[datetime] = None) -> Vote:
        """
        Record a pairwise vote between two existing entries.

        Unlike submit_entry, unknown paths are never created here.

        Raises:
            InvalidVoteError: Same path on both sides or bad direction
            ForeignKeyError: Either path is unknown
        """
        at = self._timestamp(at)
        with self.db.transaction() as session:
            vote = record_vote(self.db, session, left_path, right_path, direction, at)

        calculator = self._calculator
        if calculator is not None and vote.id > calculator.last_vote_id:
            calculator.add_vote(vote.left_path, vote.right_path, vote.vote, vote.id)
        return vote

    def mark_deleted(self, path: str, at: Optional[datetime] = None) -> Entry:
        """
        Soft-delete an entry. Its votes keep counting for everyone else.

        Raises:
            NotFoundError: If the path is unknown
        """
        at = self._timestamp(at)
        with self.db.transaction() as session:
            entry = self.db.mark_deleted(session, path, at)
        return entry

    # ============================================
    # CONSUMERS
    # ============================================

    def list_ordered(self, limit: Optional[int] = None, offset: int = 0, include_deleted: bool = False) -> List[RankedEntry]:
        """
        Page of the current ranked order.

        Args:
            limit: Maximum number of entries (None = all)
            offset: Number of ranked entries to skip
            include_deleted: Rank soft-deleted entries too

        Returns:
            List of RankedEntry (positions are global, not page-relative)
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")

        ranked = self.ranking(include_deleted=include_deleted)
        end = None if limit is None else offset + limit
        return ranked[offset:end]

    def ranking(self, include_deleted: bool = False) -> List[RankedEntry]:
        """Full ranked order."""
        session = self.db.get_session()
        try:
            # Votes first: every entry a vote references is committed before the vote
            calculator = self._sync(session)
            entries = self.db.list_entries(session, include_deleted=True)
            return calculator.rank(entries, include_deleted=include_deleted)
        finally:
            session.close()

    def entry_at_position(self, position: int, include_deleted: bool = False) -> RankedEntry:
        """
        Ranked entry at a 1-based position.

        Raises:
            NotFoundError: If no entry holds that position
        """
        if position >= 1:
            page = self.list_ordered(limit=1, offset=position - 1, include_deleted=include_deleted)
            if page:
                return page[0]
        raise NotFoundError(position, f"No entry at position {position}")

    def get_entry(self, path: str) -> Entry:
        session = self.db.get_session()
        try:
            return self.db.get_entry(session, path)
        finally:
            session.close()

    def current_content(self, path: str) -> Optional[ContentRecord]:
        session = self.db.get_session()
        try:
            self.db.get_entry(session, path)
            return self.db.current_content(session, path)
        finally:
            session.close()

    def content_history(self, path: str) -> List[ContentRecord]:
        session = self.db.get_session()
        try:
            return self.db.content_history(session, path)
        finally:
            session.close()

    def votes_for_pair(self, a: str, b: str) -> List[PairVote]:
        """
        Vote history of a pair, relative to (a, b).

        Raises:
            NotFoundError: If either path is unknown
        """
        session = self.db.get_session()
        try:
            self.db.get_entry(session, a)
            self.db.get_entry(session, b)
            return votes_for_pair(session, a, b)
        finally:
            session.close()

    def net_preference(self, a: str, b: str) -> int:
        """Net votes for a over b, after folding in new votes."""
        session = self.db.get_session()
        try:
            return self._sync(session).net_preference(a, b)
        finally:
            session.close()

    def rerank(self) -> Dict:
        """
        Rebuild the score table from the full vote log and log the run.

        Returns:
            Dict with the logged statistics, top_entries and duration_seconds
        """
        session = self.db.get_session()
        try:
            _, log = self._rebuild(session, trigger='rerank', log_db_path=self.log_db_path)
        finally:
            session.close()

        stats = dict(log.stats)
        stats['top_entries'] = log.top_entries
        stats['duration_seconds'] = log.duration_seconds
        return stats

    # ============================================
    # SCORE TABLE MAINTENANCE
    # ============================================

    def _sync(self, session: Session) -> EntryRankCalculator:
        """Bring the score table up to date with the vote log."""
        count, max_id = vote_log_state(session)
        calculator = self._calculator

        if calculator is None:
            # First read in this process; not worth a log row
            calculator, _ = self._rebuild(session, trigger='startup', log_db_path=None)
            return calculator

        if (count, max_id) == (calculator.total_votes, calculator.last_vote_id):
            return calculator

        if max_id > calculator.last_vote_id:
            new_votes = list(iter_votes(session, after_id=calculator.last_vote_id))
            if calculator.total_votes + len(new_votes) == count:
                calculator.replay(new_votes)
                return calculator

        calculator, _ = self._rebuild(session, trigger='refresh', log_db_path=self.log_db_path)
        return calculator

    def _rebuild(self, session: Session, trigger: str, log_db_path: Optional[str]):
        with log_ranking_execution(log_db_path, trigger) as log:
            calculator = EntryRankCalculator().replay(iter_votes(session))
            entries = self.db.list_entries(session, include_deleted=True)
            ranked = calculator.rank(entries)

            log.set_stats(
                total_entries=len(entries),
                deleted_entries=sum(1 for e in entries if e.is_deleted),
                total_votes=calculator.total_votes,
                skip_votes=calculator.skip_votes,
                voted_pairs=calculator.voted_pairs,
                resolved_pairs=calculator.resolved_pairs,
                entries_ranked=len(ranked),
                uncompared_entries=sum(1 for r in ranked if r.comparisons == 0),
                **calculator.score_statistics(ranked)
            )
            log.set_top_entries(ranked)

        self._calculator = calculator
        return calculator, log
