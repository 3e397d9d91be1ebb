# ---------------------------------------------------------------------------
# Tests configuration
# ---------------------------------------------------------------------------

import json
from datetime import datetime, timedelta, timezone

import pytest

from backend.action_analytics.dataset import FactBase
from backend.action_analytics.models import ActionRecord, UserRecord


T1 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(minutes=5)
T3 = T1 + timedelta(minutes=10)


def action(id, type, user, at, target=None):
    return ActionRecord(id=id, type=type, actor_user_id=user, occurred_at=at, target_user_id=target)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def transition_actions():
    """Three users who all start with A; two continue with B, one with C."""
    return [
        action(1, "A", 1, T1),
        action(2, "B", 1, T2),
        action(3, "A", 2, T1),
        action(4, "C", 2, T2),
        action(5, "A", 3, T1),
        action(6, "B", 3, T2),
    ]


@pytest.fixture
def users():
    return [
        UserRecord(id=1, name="Ada", created_at=T1),
        UserRecord(id=2, name="Grace", created_at=T1),
        UserRecord(id=3, name="Linus", created_at=T1),
        UserRecord(id=4, name="Barbara", created_at=T1),
    ]


@pytest.fixture
def referral_actions():
    # 1 invites 2 and 3, 3 invites 4, 2 tries to re-invite 4
    return [
        action(10, "REFER_USER", 1, T1, target=2),
        action(11, "REFER_USER", 1, T2, target=3),
        action(12, "REFER_USER", 3, T2, target=4),
        action(13, "REFER_USER", 2, T3, target=4),
    ]


@pytest.fixture
def fact_base(transition_actions, referral_actions, users):
    return FactBase.from_records(transition_actions + referral_actions, users)


@pytest.fixture
def json_fact_files(tmp_path):
    """Actions/users files in the shape of the upstream JSON export."""
    actions = [
        {"id": 1, "type": "VIEW_CONVERSATION", "userId": 1, "targetUser": 2, "createdAt": "2022-04-14T11:12:22.758Z"},
        {"id": 2, "type": "EDIT_CONTACT", "userId": 1, "targetUser": 2, "createdAt": "2022-04-14T11:13:00.000Z"},
        {"id": 3, "type": "REFER_USER", "userId": 1, "targetUser": 2, "createdAt": "2022-04-14T11:14:00.000Z"},
        {"id": 4, "type": "VIEW_CONVERSATION", "userId": 2, "targetUser": 1, "createdAt": "2022-04-15T09:00:00+02:00"},
    ]
    users = [
        {"id": 1, "name": "Ferdinande", "createdAt": "2020-07-14T05:48:54.798Z"},
        {"id": 2, "name": "Ulysses", "createdAt": "2020-02-20T01:01:01.000Z"},
    ]
    actions_path = tmp_path / "actions.json"
    users_path = tmp_path / "users.json"
    actions_path.write_text(json.dumps(actions), encoding="utf-8")
    users_path.write_text(json.dumps(users), encoding="utf-8")
    return actions_path, users_path
