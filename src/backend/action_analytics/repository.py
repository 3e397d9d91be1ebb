from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from .errors import LoadError
from .models import ActionRecord, UserRecord

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# fractional seconds right before the UTC offset or end of string
_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def _six_digit_fraction(match: "re.Match[str]") -> str:
    return "." + (match.group(1) + "000000")[:6]


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an RFC 3339 timestamp (``2022-04-14T11:12:22.758Z``) or pass a
    ``datetime`` through. Naive values are interpreted as UTC so every record
    in the fact base stays comparable.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        raw = _FRACTION.sub(_six_digit_fraction, raw, count=1)
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise LoadError(f"malformed timestamp {value!r}") from exc
    else:
        raise LoadError(f"malformed timestamp {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_int(value: Any, field_name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise LoadError(f"field {field_name!r} must be an integer, got {value!r}")
    return value


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise LoadError(f"field {field_name!r} must be a string, got {value!r}")
    return value


def _require_key(payload: Mapping[str, Any], key: str) -> Any:
    if key not in payload:
        raise LoadError(f"missing field {key!r} in {dict(payload)!r}")
    return payload[key]


def parse_action(payload: Mapping[str, Any]) -> ActionRecord:
    """Map one JSON action object (``id/type/userId/targetUser/createdAt``)."""
    if not isinstance(payload, Mapping):
        raise LoadError(f"action entry must be an object, got {payload!r}")
    target = payload.get("targetUser")
    return ActionRecord(
        id=_require_int(_require_key(payload, "id"), "id"),
        type=_require_str(_require_key(payload, "type"), "type"),
        actor_user_id=_require_int(_require_key(payload, "userId"), "userId"),
        target_user_id=None if target is None else _require_int(target, "targetUser"),
        occurred_at=parse_timestamp(_require_key(payload, "createdAt")),
    )


def parse_user(payload: Mapping[str, Any]) -> UserRecord:
    if not isinstance(payload, Mapping):
        raise LoadError(f"user entry must be an object, got {payload!r}")
    return UserRecord(
        id=_require_int(_require_key(payload, "id"), "id"),
        name=_require_str(_require_key(payload, "name"), "name"),
        created_at=parse_timestamp(_require_key(payload, "createdAt")),
    )


class FactRepository:
    """
    Interface for loading the fact base.

    Implementations return every action and user record in one call. Parsing
    must be strict: anything malformed raises :class:`LoadError` instead of
    being skipped or defaulted.
    """

    def load(self) -> Tuple[Sequence[ActionRecord], Sequence[UserRecord]]:
        raise NotImplementedError


class InMemoryRepository(FactRepository):
    def __init__(self, actions: Iterable[ActionRecord], users: Iterable[UserRecord] = ()):
        self.actions = tuple(actions)
        self.users = tuple(users)

    def load(self) -> Tuple[Sequence[ActionRecord], Sequence[UserRecord]]:
        return self.actions, self.users


class UnavailableRepository(FactRepository):
    """Stands in for a misconfigured source; every load fails with the reason."""

    def __init__(self, reason: str):
        self.reason = reason

    def load(self) -> Tuple[Sequence[ActionRecord], Sequence[UserRecord]]:
        raise LoadError(self.reason)


class JSONFileRepository(FactRepository):
    """
    Load actions (and optionally users) from JSON array files.

    Expected shapes:
      - actions: ``[{"id", "type", "userId", "targetUser", "createdAt"}, ...]``
      - users: ``[{"id", "name", "createdAt"}, ...]``
    """

    def __init__(self, actions_path: PathLike, users_path: Optional[PathLike] = None):
        self.actions_path = Path(actions_path)
        self.users_path = Path(users_path) if users_path is not None else None

    def load(self) -> Tuple[Sequence[ActionRecord], Sequence[UserRecord]]:
        actions = tuple(parse_action(item) for item in self._read_array(self.actions_path))
        users: Tuple[UserRecord, ...] = ()
        if self.users_path is not None:
            users = tuple(parse_user(item) for item in self._read_array(self.users_path))
        logger.info("Loaded %d actions and %d users from %s", len(actions), len(users), self.actions_path.parent)
        return actions, users

    @staticmethod
    def _read_array(path: Path) -> List[Any]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise LoadError(f"cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise LoadError(f"invalid JSON in {path}: {exc}") from exc
        if not isinstance(payload, list):
            raise LoadError(f"{path} must contain a JSON array")
        return payload


class SQLFactRepository(FactRepository):
    """
    Load the fact base from a relational database.

    Expected tables:
      - actions(id, type, user_id, target_user, created_at)
      - users(id, name, created_at)
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self) -> Tuple[Sequence[ActionRecord], Sequence[UserRecord]]:
        try:
            return self._load_actions(), self._load_users()
        except SQLAlchemyError as exc:
            raise LoadError(f"failed to query fact base: {exc}") from exc

    def _load_actions(self) -> Sequence[ActionRecord]:
        query = text(
            """
            SELECT id, type, user_id, target_user, created_at
            FROM actions
            ORDER BY id ASC
            """
        )
        with self.engine.connect() as connection:
            rows = connection.execute(query).fetchall()
        return tuple(self._row_to_action(row) for row in rows)

    def _load_users(self) -> Sequence[UserRecord]:
        query = text("SELECT id, name, created_at FROM users ORDER BY id ASC")
        with self.engine.connect() as connection:
            rows = connection.execute(query).fetchall()
        return tuple(self._row_to_user(row) for row in rows)

    @staticmethod
    def _row_to_action(row: Row) -> ActionRecord:
        return ActionRecord(
            id=_require_int(row.id, "id"),
            type=_require_str(row.type, "type"),
            actor_user_id=_require_int(row.user_id, "user_id"),
            target_user_id=None if row.target_user is None else _require_int(row.target_user, "target_user"),
            occurred_at=parse_timestamp(row.created_at),
        )

    @staticmethod
    def _row_to_user(row: Row) -> UserRecord:
        return UserRecord(
            id=_require_int(row.id, "id"),
            name=_require_str(row.name, "name"),
            created_at=parse_timestamp(row.created_at),
        )


@dataclass(frozen=True)
class RepositoryConfig:
    database_url: Optional[str] = None
    actions_path: Optional[str] = None
    users_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RepositoryConfig":
        return cls(
            database_url=os.getenv("ACTION_ANALYTICS_DATABASE_URL"),
            actions_path=os.getenv("ACTION_ANALYTICS_ACTIONS_PATH"),
            users_path=os.getenv("ACTION_ANALYTICS_USERS_PATH"),
        )


def build_repository_from_env(config: Optional[RepositoryConfig] = None) -> Optional[FactRepository]:
    cfg = config or RepositoryConfig.from_env()
    if cfg.database_url:
        try:
            engine = create_engine(cfg.database_url)
        except ArgumentError as exc:
            logger.error("Invalid database URL: %s", exc)
            return UnavailableRepository(f"invalid database URL: {exc}")
        return SQLFactRepository(engine)
    if cfg.actions_path:
        return JSONFileRepository(cfg.actions_path, cfg.users_path)
    return None
