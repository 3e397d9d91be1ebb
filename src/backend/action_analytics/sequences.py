from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from .models import ActionRecord

OrderedUserSequence = Dict[int, Tuple[ActionRecord, ...]]


def build_sequences(records: Iterable[ActionRecord]) -> OrderedUserSequence:
    """
    Group actions by the acting user and order each group chronologically.

    Actions sharing a timestamp are ordered by id, which makes the order total
    and reproducible regardless of the input order.
    """

    grouped: Dict[int, List[ActionRecord]] = defaultdict(list)
    for record in records:
        grouped[record.actor_user_id].append(record)

    return {
        user_id: tuple(sorted(actions, key=lambda action: action.sort_key))
        for user_id, actions in grouped.items()
    }
