from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .errors import LoadError
from .models import ActionRecord, UserRecord
from .repository import FactRepository

logger = logging.getLogger(__name__)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _reject_duplicate_ids(kind: str, ids: Iterable[int]) -> None:
    seen = set()
    for record_id in ids:
        if record_id in seen:
            raise LoadError(f"duplicate {kind} id {record_id}")
        seen.add(record_id)


@dataclass(frozen=True)
class FactBase:
    """
    Read-only snapshot of every action and user known to the service.

    Built once and shared by reference; nothing in the package mutates it.
    """

    actions: Tuple[ActionRecord, ...]
    users: Tuple[UserRecord, ...] = ()
    _users_by_id: Dict[int, UserRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        actions = tuple(
            action if _is_aware(action.occurred_at) else replace(action, occurred_at=_as_utc(action.occurred_at))
            for action in self.actions
        )
        users = tuple(
            user if _is_aware(user.created_at) else replace(user, created_at=_as_utc(user.created_at))
            for user in self.users
        )
        _reject_duplicate_ids("action", (action.id for action in actions))
        _reject_duplicate_ids("user", (user.id for user in users))
        object.__setattr__(self, "actions", actions)
        object.__setattr__(self, "users", users)
        object.__setattr__(self, "_users_by_id", {user.id: user for user in users})

    @classmethod
    def from_records(
        cls,
        actions: Iterable[ActionRecord],
        users: Iterable[UserRecord] = (),
    ) -> "FactBase":
        return cls(actions=tuple(actions), users=tuple(users))

    def user(self, user_id: int) -> Optional[UserRecord]:
        return self._users_by_id.get(user_id)

    def actions_by_user(self, user_id: int) -> Sequence[ActionRecord]:
        return [action for action in self.actions if action.actor_user_id == user_id]


class FactBaseLoader:
    """
    Single-initialization barrier around a :class:`FactRepository`.

    The first :meth:`get` call parses the source while holding a lock, so
    concurrent callers wait for that one load instead of starting their own.
    The outcome is memoized either way: a failed load keeps raising the same
    :class:`LoadError` until a new loader is created from fixed data.
    """

    def __init__(self, repository: FactRepository):
        self.repository = repository
        self._lock = threading.Lock()
        self._loaded = False
        self._fact_base: Optional[FactBase] = None
        self._error: Optional[LoadError] = None

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self) -> FactBase:
        if not self._loaded:
            with self._lock:
                if not self._loaded:
                    self._load()
        if self._error is not None:
            raise self._error
        assert self._fact_base is not None
        return self._fact_base

    def _load(self) -> None:
        try:
            actions, users = self.repository.load()
            fact_base = FactBase.from_records(actions, users)
        except LoadError as exc:
            logger.error("Fact base failed to load: %s", exc)
            self._error = exc
            self._loaded = True
            return
        self._fact_base = fact_base
        self._loaded = True
        logger.info("Fact base ready: %d actions, %d users", len(fact_base.actions), len(fact_base.users))
        if fact_base.actions and not fact_base.users:
            logger.warning("No users loaded; user lookups and action counts will report every user as missing")
