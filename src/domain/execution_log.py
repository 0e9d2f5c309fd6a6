"""
Ranking execution logging.

Full ranking rebuilds are recorded in a separate SQLite logs database so the
log never competes with producer transactions on the main database.
"""

import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from db.models import RankingExecution


class RankingExecutionLogger:
    """
    Collects statistics for one ranking rebuild and saves them.
    """

    def __init__(self, log_db_path: str, trigger: Optional[str] = None):
        """
        Initialize logger.

        Args:
            log_db_path: Path of the logs database
            trigger: What started the rebuild ('rerank', 'refresh', 'startup')
        """
        self.log_db_path = log_db_path
        self.trigger = trigger

        # Timing
        self.started_at = datetime.utcnow()
        self.completed_at: Optional[datetime] = None
        self.duration_seconds: Optional[float] = None

        self.stats: Dict[str, Any] = {}
        self.top_entries: List[Dict[str, Any]] = []

        # Status
        self.success: bool = True
        self.error_message: Optional[str] = None

    def set_stats(self, **stats):
        """Record input/result counters (total_votes, resolved_pairs, ...)."""
        self.stats.update(stats)

    def set_top_entries(self, ranked, limit: int = 10):
        """Keep the first `limit` ranked entries for quick reference."""
        self.top_entries = [
            {'path': r.path, 'score': r.rank_score}
            for r in ranked[:limit]
        ]

    def mark_success(self):
        """Mark rebuild as successful and calculate duration."""
        self.completed_at = datetime.utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
        self.success = True

    def mark_error(self, error_message: str):
        """Mark rebuild as failed with error message."""
        self.completed_at = datetime.utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
        self.success = False
        self.error_message = error_message

    def save(self):
        """
        Save log entry to the logs database.

        Retries briefly when the database is locked. A log that cannot be
        written produces a warning on stderr; it never fails the ranking.
        """
        try:
            Path(self.log_db_path).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(f'sqlite:///{self.log_db_path}', echo=False)
        except (OSError, SQLAlchemyError) as e:
            print(f"Warning: Failed to open ranking log database: {e}", file=sys.stderr)
            return

        session = None
        max_retries = 3
        retry_delay = 0.1  # 100ms

        try:
            RankingExecution.__table__.create(engine, checkfirst=True)
            session = sessionmaker(bind=engine)()

            for attempt in range(max_retries):
                try:
                    session.add(RankingExecution(
                        started_at=self.started_at,
                        completed_at=self.completed_at,
                        duration_seconds=self.duration_seconds,
                        trigger=self.trigger,
                        total_entries=self.stats.get('total_entries'),
                        deleted_entries=self.stats.get('deleted_entries'),
                        total_votes=self.stats.get('total_votes'),
                        skip_votes=self.stats.get('skip_votes'),
                        voted_pairs=self.stats.get('voted_pairs'),
                        resolved_pairs=self.stats.get('resolved_pairs'),
                        entries_ranked=self.stats.get('entries_ranked'),
                        uncompared_entries=self.stats.get('uncompared_entries'),
                        min_score=self.stats.get('min_score'),
                        max_score=self.stats.get('max_score'),
                        mean_score=self.stats.get('mean_score'),
                        median_score=self.stats.get('median_score'),
                        std_dev_score=self.stats.get('std_dev_score'),
                        top_entries=self.top_entries or None,
                        success=1 if self.success else 0,
                        error_message=self.error_message
                    ))
                    session.commit()
                    break

                except OperationalError:
                    session.rollback()
                    if attempt < max_retries - 1:
                        time.sleep(retry_delay)
                        retry_delay *= 2  # Exponential backoff
                        continue
                    print(f"Warning: Failed to save ranking log after {max_retries} attempts (database locked)", file=sys.stderr)

        except SQLAlchemyError as e:
            if session is not None:
                session.rollback()
            print(f"Warning: Failed to save ranking log: {e}", file=sys.stderr)

        finally:
            if session is not None:
                session.close()
            engine.dispose()


@contextmanager
def log_ranking_execution(log_db_path: Optional[str], trigger: Optional[str] = None):
    """
    Context manager for logging a ranking rebuild.

    With log_db_path=None nothing is persisted, but the logger is still
    yielded so callers don't need a separate code path.

    Example:
        >>> with log_ranking_execution('data/entries_logs.db', 'rerank') as log:
        ...     ranked = calculator.rank(entries)
        ...     log.set_stats(entries_ranked=len(ranked))
        ...     log.set_top_entries(ranked)
    """
    logger = RankingExecutionLogger(log_db_path, trigger)

    try:
        yield logger
        logger.mark_success()
    except Exception as e:
        logger.mark_error(str(e))
        raise
    finally:
        if log_db_path:
            logger.save()
