"""
Unit tests for the concurrent Repeat runner.
"""

import threading

import pytest

from conftest import Book, Character, FakeDriver
from papergres.config.models import ExecutionConfig
from papergres.core.binding import RecordList
from papergres.core.database import Database
from papergres.core.errors import (
    EmptyBatchError,
    InvalidRecordShapeError,
    IterationCancelledError,
    IterationFailedError,
    PrepareFailedError,
    RepeatError,
)
from papergres.db.protocol import StatementOutcome


SELECT_CHARACTERS = "SELECT * FROM paper.character WHERE book_id = $1"


class TestRepeatExec:
    """Tests for Repeat.exec()."""

    def test_zero_iterations(self, db: Database, fake_driver: FakeDriver):
        """n == 0 returns no results and never prepares."""
        results, err = db.query(SELECT_CHARACTERS).repeat(0, lambda i: (None, [i])).exec()

        assert results == []
        assert err is None
        assert fake_driver.statements == []

    def test_negative_iterations(self, db: Database):
        with pytest.raises(ValueError):
            db.query(SELECT_CHARACTERS).repeat(-1, lambda i: (None, [i])).exec()

    def test_results_are_index_aligned(self, db: Database, fake_driver: FakeDriver):
        """results[i] holds iteration i's rows regardless of completion order."""
        fake_driver.responders[SELECT_CHARACTERS] = lambda sql, args: _rows_for(args[0])
        book_ids = [3, 1, 2, 5]
        dests = [RecordList(Character) for _ in book_ids]

        results, err = (
            db.query(SELECT_CHARACTERS)
            .repeat(len(book_ids), lambda i: (dests[i], [book_ids[i]]))
            .exec()
        )

        assert err is None
        assert [r.rows_returned for r in results] == book_ids
        for dest, book_id in zip(dests, book_ids):
            assert all(c.book_id == book_id for c in dest)

    def test_failing_iteration_does_not_stop_others(self, db: Database, fake_driver: FakeDriver):
        """Only the failing iteration carries an error; the merged error names it."""
        fake_driver.fail_args.add((2,))

        results, err = db.query(SELECT_CHARACTERS).repeat(4, lambda i: (None, [i])).exec()

        assert len(results) == 4
        assert isinstance(results[2].err, IterationFailedError)
        assert results[2].err.index == 2
        assert all(results[i].ok for i in (0, 1, 3))
        assert isinstance(err, RepeatError)
        assert str(err) == "iteration 3/4: boom: (2,)"

    def test_params_fn_error_is_iteration_error(self, db: Database):
        def params(i):
            if i == 1:
                raise KeyError("missing parent")
            return None, [i]

        results, err = db.query(SELECT_CHARACTERS).repeat(3, params).exec()

        assert isinstance(results[1].err, IterationFailedError)
        assert len(err.errors) == 1

    def test_unusable_args_fail_only_their_iteration(self, db: Database):
        def params(i):
            if i == 1:
                return None, None
            return None, [i]

        results, err = db.query(SELECT_CHARACTERS).repeat(3, params).exec()

        assert len(results) == 3
        assert isinstance(results[1].err, IterationFailedError)
        assert results[0].ok
        assert results[2].ok
        assert len(err.errors) == 1

    def test_prepare_failure_is_fatal(self, db: Database, fake_driver: FakeDriver):
        """No iteration runs when the statement cannot be prepared."""
        fake_driver.prepare_error = RuntimeError("syntax error at or near SELEC")

        with pytest.raises(PrepareFailedError, match="syntax error"):
            db.query("SELEC 1").repeat(3, lambda i: (None, [])).exec()

        assert fake_driver.calls == []

    def test_statement_prepared_once_and_closed(self, db: Database, fake_driver: FakeDriver):
        db.query(SELECT_CHARACTERS).repeat(5, lambda i: (None, [i])).exec()

        assert len(fake_driver.statements) == 1
        assert fake_driver.statements[0].closed

    def test_statement_closed_after_failures(self, db: Database, fake_driver: FakeDriver):
        fake_driver.fail_args.update({(0,), (1,)})

        db.query(SELECT_CHARACTERS).repeat(2, lambda i: (None, [i])).exec()

        assert fake_driver.statements[0].closed

    def test_concurrency_capped_by_driver_capacity(self, db: Database, fake_driver: FakeDriver):
        """Never more in-flight iterations than the pool hands out."""
        fake_driver.delay = 0.01

        results, err = db.query(SELECT_CHARACTERS).repeat(20, lambda i: (None, [i])).exec()

        assert err is None
        assert len(results) == 20
        assert fake_driver.max_active <= fake_driver.capacity

    def test_max_concurrency_setting(self, db: Database, fake_driver: FakeDriver):
        fake_driver.delay = 0.01
        db.execution = ExecutionConfig(max_concurrency=1)

        db.query(SELECT_CHARACTERS).repeat(5, lambda i: (None, [i])).exec()

        assert fake_driver.max_active == 1

    def test_timeout_cancels_pending_iterations(self, db: Database, fake_driver: FakeDriver):
        """Iterations not started by the timeout are cancelled."""
        release = threading.Event()
        fake_driver.responders[SELECT_CHARACTERS] = lambda sql, args: _wait_for(release)
        db.execution = ExecutionConfig(max_concurrency=1)

        timer = threading.Timer(0.5, release.set)
        timer.start()
        try:
            results, err = (
                db.query(SELECT_CHARACTERS)
                .repeat(4, lambda i: (None, [i]))
                .exec(timeout=0.05)
            )
        finally:
            timer.cancel()
            release.set()

        assert results[0].ok
        assert all(isinstance(r.err, IterationCancelledError) for r in results[1:])
        assert err.cancelled
        assert len(fake_driver.calls) == 1


class TestInsertAll:
    """Tests for Schema.insert_all()."""

    def test_inserts_every_record(self, db: Database, fake_driver: FakeDriver, sample_characters: list[Character]):
        """Each record gets its own generated id, in input order."""
        results, err = db.schema("paper").insert_all(sample_characters)

        assert err is None
        assert len(results) == 4
        assert sorted(r.last_insert_id.id for r in results) == [1, 2, 3, 4]
        assert len(fake_driver.statements) == 1
        assert fake_driver.statements[0].sql.startswith("INSERT INTO paper.character (book_id, name")

    def test_args_belong_to_their_record(self, db: Database, fake_driver: FakeDriver, sample_characters: list[Character]):
        db.schema("paper").insert_all(sample_characters)

        names = sorted(args[1] for _, _, args in fake_driver.calls)
        assert names == sorted(c.name for c in sample_characters)

    def test_ids_copy_back_by_index(self, db: Database, fake_driver: FakeDriver, sample_characters: list[Character]):
        def id_by_name(sql, args):
            return _insert_outcome(100 + [c.name for c in sample_characters].index(args[1]))

        fake_driver.responders[
            db.schema("paper").generate_insert(sample_characters[0]).sql
        ] = id_by_name

        results, _ = db.schema("paper").insert_all(sample_characters)

        assert [r.last_insert_id.id for r in results] == [100, 101, 102, 103]

    def test_empty_list(self, db: Database):
        with pytest.raises(EmptyBatchError):
            db.schema("paper").insert_all([])

    def test_not_a_list(self, db: Database, sample_book: Book):
        with pytest.raises(InvalidRecordShapeError, match="not a list of records"):
            db.schema("paper").insert_all(sample_book)

    def test_mixed_record_types(self, db: Database, sample_book: Book, sample_characters: list[Character]):
        with pytest.raises(InvalidRecordShapeError, match="expects Book records"):
            db.schema("paper").insert_all([sample_book, sample_characters[0]])

    def test_public_schema_shortcut(self, db: Database, fake_driver: FakeDriver, sample_book: Book):
        db.insert_all([sample_book])

        assert fake_driver.statements[0].sql.startswith("INSERT INTO public.book")


def _rows_for(book_id: int):
    rows = [{"character_id": n, "book_id": book_id, "name": f"c{n}"} for n in range(book_id)]
    return StatementOutcome(rows, len(rows))


def _insert_outcome(new_id: int):
    return StatementOutcome([{"lastinsertid": new_id}], 1)


def _wait_for(event: threading.Event):
    event.wait(5)
    return StatementOutcome([], 0)
