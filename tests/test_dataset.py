"""Tests for the fact base snapshot and its load-once barrier."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
from conftest import T1, action

from backend.action_analytics.dataset import FactBase, FactBaseLoader
from backend.action_analytics.errors import LoadError
from backend.action_analytics.models import UserRecord
from backend.action_analytics.repository import FactRepository, InMemoryRepository
from backend.action_analytics.sequences import build_sequences


class CountingRepository(FactRepository):
    """Repository that records how often it was asked to load."""

    def __init__(self, result=None, error=None, delay=0.0):
        self.calls = 0
        self.result = result if result is not None else ((), ())
        self.error = error
        self.delay = delay
        self._lock = threading.Lock()

    def load(self):
        with self._lock:
            self.calls += 1
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class TestFactBase:

    def test_lookup_user(self, fact_base):
        assert fact_base.user(2).name == "Grace"
        assert fact_base.user(99) is None

    def test_actions_by_user(self, fact_base):
        ids = {a.id for a in fact_base.actions_by_user(1)}
        assert ids == {1, 2, 10, 11}
        assert fact_base.actions_by_user(99) == []

    def test_collections_are_tuples(self, transition_actions, users):
        fact_base = FactBase.from_records(iter(transition_actions), iter(users))
        assert isinstance(fact_base.actions, tuple)
        assert isinstance(fact_base.users, tuple)
        assert len(fact_base.actions) == 6

    def test_frozen(self, fact_base):
        with pytest.raises(AttributeError):
            fact_base.actions = ()

    def test_duplicate_action_ids_rejected(self):
        with pytest.raises(LoadError, match="duplicate action id 1"):
            FactBase.from_records([action(1, "A", 1, T1), action(1, "B", 1, T1)])

    def test_duplicate_user_ids_rejected(self):
        users = [UserRecord(id=3, name="Ada", created_at=T1), UserRecord(id=3, name="Grace", created_at=T1)]
        with pytest.raises(LoadError, match="duplicate user id 3"):
            FactBase.from_records([], users)

    def test_naive_timestamps_taken_as_utc(self):
        naive = datetime(2024, 1, 1, 10, 2)
        fact_base = FactBase.from_records(
            [action(1, "A", 1, T1), action(2, "B", 1, naive), action(3, "C", 1, datetime(2024, 1, 1, 9, 0))],
            [UserRecord(id=1, name="Ada", created_at=naive)],
        )
        assert all(a.occurred_at.tzinfo is not None for a in fact_base.actions)
        assert fact_base.actions[1].occurred_at == datetime(2024, 1, 1, 10, 2, tzinfo=timezone.utc)
        assert fact_base.user(1).created_at.tzinfo == timezone.utc
        assert [a.id for a in build_sequences(fact_base.actions)[1]] == [3, 1, 2]


class TestFactBaseLoader:

    def test_returns_same_snapshot(self, transition_actions):
        loader = FactBaseLoader(InMemoryRepository(transition_actions))
        assert not loader.loaded
        first = loader.get()
        assert loader.loaded
        assert loader.get() is first

    def test_loads_exactly_once_under_concurrency(self):
        repository = CountingRepository(delay=0.05)
        loader = FactBaseLoader(repository)
        with ThreadPoolExecutor(max_workers=8) as pool:
            snapshots = list(pool.map(lambda _: loader.get(), range(16)))
        assert repository.calls == 1
        assert all(snapshot is snapshots[0] for snapshot in snapshots)

    def test_failure_cached_and_reraised(self):
        repository = CountingRepository(error=LoadError("malformed timestamp 'x'"))
        loader = FactBaseLoader(repository)
        for _ in range(3):
            with pytest.raises(LoadError, match="malformed timestamp"):
                loader.get()
        assert repository.calls == 1
        assert loader.loaded

    def test_failure_seen_by_concurrent_callers(self):
        repository = CountingRepository(error=LoadError("broken"), delay=0.05)
        loader = FactBaseLoader(repository)

        def attempt(_):
            try:
                loader.get()
            except LoadError as exc:
                return exc
            return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))
        assert repository.calls == 1
        assert all(isinstance(outcome, LoadError) for outcome in outcomes)

    def test_warns_when_actions_have_no_users(self, transition_actions, caplog):
        loader = FactBaseLoader(InMemoryRepository(transition_actions))
        with caplog.at_level(logging.WARNING, logger="backend.action_analytics.dataset"):
            loader.get()
        assert "No users loaded" in caplog.text

    def test_no_warning_with_users(self, transition_actions, users, caplog):
        loader = FactBaseLoader(InMemoryRepository(transition_actions, users))
        with caplog.at_level(logging.WARNING, logger="backend.action_analytics.dataset"):
            loader.get()
        assert "No users loaded" not in caplog.text

    def test_duplicate_ids_cached_as_load_error(self):
        repository = CountingRepository(result=((action(1, "A", 1, T1), action(1, "B", 1, T1)), ()))
        loader = FactBaseLoader(repository)
        for _ in range(2):
            with pytest.raises(LoadError, match="duplicate action id"):
                loader.get()
        assert repository.calls == 1

    def test_unexpected_error_is_not_memoized(self):
        repository = CountingRepository(error=RuntimeError("bug"))
        loader = FactBaseLoader(repository)
        with pytest.raises(RuntimeError):
            loader.get()
        assert not loader.loaded
        repository.error = None
        assert loader.get().actions == ()
        assert repository.calls == 2
