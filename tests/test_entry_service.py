"""
EntryService: producer transactions, ranked pages, projection refresh
and ranking execution logs.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from db import Database, RankingExecution, NotFoundError, ForeignKeyError, InvalidVoteError, TransactionFailure
from domain.entry_service import EntryService
from conftest import at


def paths(ranked):
    return [r.path for r in ranked]


@pytest.fixture
def xyz(service):
    for i, path in enumerate(['x', 'y', 'z']):
        service.submit_entry(path, content=f"Entry {path}", at=at(i))
    return service


def read_log_rows(log_db_path):
    engine = create_engine(f'sqlite:///{log_db_path}')
    session = sessionmaker(bind=engine)()
    try:
        return session.query(RankingExecution).order_by(RankingExecution.id).all()
    finally:
        session.close()
        engine.dispose()


class TestSubmitEntry:

    def test_creates_entry_with_content(self, service):
        entry = service.submit_entry('a', content='Alpha', at=at(0))

        assert entry.path == 'a'
        assert service.current_content('a').content == 'Alpha'
        assert paths(service.list_ordered()) == ['a']

    def test_is_idempotent(self, service):
        service.submit_entry('a', content='Alpha', at=at(0))
        service.submit_entry('b', content='Beta', at=at(1))
        before = paths(service.list_ordered())

        service.submit_entry('a', content='Alpha', at=at(0))

        assert paths(service.list_ordered()) == before
        assert len(service.content_history('a')) == 1

    def test_new_content_is_appended(self, service):
        service.submit_entry('a', content='v1', at=at(0))
        service.submit_entry('a', content='v2', at=at(1))

        assert [r.content for r in service.content_history('a')] == ['v1', 'v2']
        assert service.get_entry('a').updated_at == at(1)

    def test_without_content_only_registers_path(self, service):
        service.submit_entry('a', at=at(0))

        assert service.current_content('a') is None
        assert service.content_history('a') == []

    def test_storage_failure_is_wrapped_and_rolled_back(self, service, monkeypatch):
        def failing_commit(self):
            raise OperationalError('COMMIT', {}, Exception('database is locked'))

        monkeypatch.setattr(Session, 'commit', failing_commit)
        with pytest.raises(TransactionFailure):
            service.submit_entry('a', content='Alpha', at=at(0))
        monkeypatch.undo()

        assert service.list_ordered() == []


class TestSubmitVote:

    def test_chain_example_order(self, xyz):
        xyz.submit_vote('x', 'y', 'left', at=at(10))
        xyz.submit_vote('y', 'z', 'left', at=at(11))

        ranked = xyz.list_ordered()
        assert [(r.path, r.rank_score) for r in ranked] == [('x', 1), ('y', 0), ('z', -1)]

    def test_cycle_does_not_fail(self, xyz):
        xyz.submit_vote('x', 'y', 1, at=at(10))
        xyz.submit_vote('y', 'z', 1, at=at(11))
        xyz.submit_vote('z', 'x', 1, at=at(12))

        assert paths(xyz.list_ordered()) == ['x', 'y', 'z']

    def test_unknown_path_is_not_created(self, xyz):
        with pytest.raises(ForeignKeyError):
            xyz.submit_vote('x', 'nope', 1)

        with pytest.raises(NotFoundError):
            xyz.get_entry('nope')

    def test_self_vote_is_rejected(self, xyz):
        with pytest.raises(InvalidVoteError):
            xyz.submit_vote('x', 'x', 1)

    def test_vote_bumps_updated_at(self, xyz):
        xyz.submit_vote('x', 'y', 1, at=at(30))

        assert xyz.get_entry('x').updated_at == at(30)
        assert xyz.get_entry('y').updated_at == at(30)
        assert xyz.get_entry('z').updated_at == at(2)

    def test_vote_after_read_updates_ranking(self, xyz):
        assert paths(xyz.list_ordered()) == ['x', 'y', 'z']

        xyz.submit_vote('y', 'z', -1, at=at(10))
        xyz.submit_vote('x', 'z', -1, at=at(11))

        assert paths(xyz.list_ordered()) == ['z', 'x', 'y']
        assert xyz.net_preference('z', 'x') == 1

    def test_votes_for_pair(self, xyz):
        xyz.submit_vote('x', 'y', 1, at=at(10))
        xyz.submit_vote('y', 'x', 1, at=at(11))

        votes = xyz.votes_for_pair('y', 'x')
        assert [v.preference for v in votes] == [-1, 1]
        assert xyz.net_preference('x', 'y') == 0

    def test_votes_for_pair_unknown_entry(self, xyz):
        with pytest.raises(NotFoundError):
            xyz.votes_for_pair('x', 'nope')


class TestMarkDeleted:

    def test_hides_entry_but_keeps_votes(self, xyz):
        xyz.submit_vote('x', 'y', 1, at=at(10))
        xyz.submit_vote('y', 'z', 1, at=at(11))

        xyz.mark_deleted('x', at=at(20))

        assert [(r.path, r.rank_score) for r in xyz.list_ordered()] == [('y', 0), ('z', -1)]
        assert paths(xyz.list_ordered(include_deleted=True)) == ['x', 'y', 'z']
        assert len(xyz.votes_for_pair('x', 'y')) == 1
        assert xyz.rerank()['total_votes'] == 2

    def test_unknown_path(self, service):
        with pytest.raises(NotFoundError):
            service.mark_deleted('nope')

    def test_resubmitting_deleted_entry_keeps_it_deleted(self, service):
        service.submit_entry('a', content='Alpha', at=at(0))
        service.mark_deleted('a', at=at(1))

        service.submit_entry('a', content='Alpha again', at=at(2))

        assert service.get_entry('a').is_deleted
        assert service.list_ordered() == []


class TestListOrdered:

    def test_pages_are_slices_of_the_full_order(self, service):
        for i in range(7):
            service.submit_entry(f"e{i}", at=at(i))

        full = paths(service.list_ordered())
        page = service.list_ordered(limit=3, offset=2)

        assert paths(page) == full[2:5]
        assert [r.position for r in page] == [3, 4, 5]
        assert service.list_ordered(offset=10) == []
        assert service.list_ordered(limit=0) == []

    @pytest.mark.parametrize('limit,offset', [(-1, 0), (None, -1)])
    def test_negative_arguments(self, service, limit, offset):
        with pytest.raises(ValueError):
            service.list_ordered(limit=limit, offset=offset)

    def test_entry_at_position(self, xyz):
        xyz.submit_vote('z', 'x', 1, at=at(10))

        assert xyz.entry_at_position(1).path == 'z'
        assert xyz.entry_at_position(3).path == 'y'

        for position in (0, 4):
            with pytest.raises(NotFoundError):
                xyz.entry_at_position(position)


class TestProjection:

    def test_sees_votes_from_another_process(self, db, xyz):
        assert paths(xyz.list_ordered()) == ['x', 'y', 'z']

        other = EntryService(Database(db.db_path))
        other.submit_vote('z', 'x', 1, at=at(10))
        other.db.dispose()

        assert paths(xyz.list_ordered()) == ['z', 'x', 'y']

    def test_rebuilds_when_log_shrinks(self, db, tmp_path):
        log_db_path = str(tmp_path / 'logs.db')
        service = EntryService(db, log_db_path=log_db_path)
        for i, path in enumerate(['x', 'y']):
            service.submit_entry(path, at=at(i))
        service.submit_vote('y', 'x', 1, at=at(10))
        assert paths(service.list_ordered()) == ['y', 'x']

        with db.engine.begin() as connection:
            connection.execute(text("DELETE FROM votes"))

        assert paths(service.list_ordered()) == ['x', 'y']
        assert [row.trigger for row in read_log_rows(log_db_path)] == ['refresh']

    def test_rerank_matches_incremental_order(self, xyz):
        xyz.submit_vote('x', 'y', -1, at=at(10))
        xyz.submit_vote('y', 'z', -1, at=at(11))
        incremental = paths(xyz.list_ordered())

        stats = xyz.rerank()

        assert paths(xyz.list_ordered()) == incremental
        assert [item['path'] for item in stats['top_entries']] == incremental


class TestRankingLog:

    def test_rerank_writes_log_row(self, db, tmp_path):
        log_db_path = str(tmp_path / 'logs' / 'entries_logs.db')
        service = EntryService(db, log_db_path=log_db_path)
        for i, path in enumerate(['x', 'y', 'z']):
            service.submit_entry(path, at=at(i))
        service.submit_vote('x', 'y', 1, at=at(10))
        service.submit_vote('x', 'z', 0, at=at(11))
        service.mark_deleted('z', at=at(12))

        stats = service.rerank()

        assert stats['total_entries'] == 3
        assert stats['deleted_entries'] == 1
        assert stats['total_votes'] == 2
        assert stats['skip_votes'] == 1
        assert stats['voted_pairs'] == 2
        assert stats['resolved_pairs'] == 1
        assert stats['entries_ranked'] == 2
        assert stats['uncompared_entries'] == 0
        assert stats['duration_seconds'] >= 0

        rows = read_log_rows(log_db_path)
        assert len(rows) == 1
        assert rows[0].trigger == 'rerank'
        assert rows[0].success == 1
        assert rows[0].top_entries == [{'path': 'x', 'score': 1}, {'path': 'y', 'score': -1}]

    def test_reads_do_not_log(self, db, tmp_path):
        log_db_path = tmp_path / 'entries_logs.db'
        service = EntryService(db, log_db_path=str(log_db_path))
        service.submit_entry('a', at=at(0))

        service.list_ordered()

        assert not log_db_path.exists()


class TestTimestamps:

    def test_aware_timestamps_are_stored_as_naive_utc(self, service):
        first = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        second = datetime(2024, 1, 2, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        service.submit_entry('a', content='x', at=first)
        service.submit_entry('a', content='y', at=second)
        service.submit_entry('b', at=first)
        service.submit_vote('a', 'b', 1, at=second)
        service.mark_deleted('b', at=second)

        entry = service.get_entry('a')
        assert entry.added_at == datetime(2024, 1, 1, 12, 0)
        assert entry.updated_at == datetime(2024, 1, 2, 12, 0)
        assert service.current_content('a').content == 'y'
        assert service.get_entry('b').updated_at == datetime(2024, 1, 2, 12, 0)

    def test_aware_and_naive_timestamps_mix(self, service):
        service.submit_entry('a', content='x', at=at(0))
        service.submit_entry('a', content='y', at=datetime(2030, 1, 1, tzinfo=timezone.utc))

        assert service.get_entry('a').updated_at == datetime(2030, 1, 1)
