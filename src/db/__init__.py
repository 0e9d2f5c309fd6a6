"""
Database package for the entries tracker.
"""

from .models import Base, LogBase, Entry, ContentRecord, Vote, VoteDirection, RankingExecution
from .database import Database, compute_content_hash
from .exceptions import EntriesError, NotFoundError, ForeignKeyError, InvalidVoteError, TransactionFailure

__all__ = ['Base', 'LogBase', 'Entry', 'ContentRecord', 'Vote', 'VoteDirection', 'RankingExecution', 'Database', 'compute_content_hash', 'EntriesError', 'NotFoundError', 'ForeignKeyError', 'InvalidVoteError', 'TransactionFailure']
