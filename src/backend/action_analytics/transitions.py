from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict

from .sequences import OrderedUserSequence


@dataclass
class TransitionFrequencyTable:
    """
    How often each action type directly followed ``current_action_type``.

    ``counts`` keys keep the casing stored in the log while the current type
    is matched case-insensitively.
    """

    current_action_type: str
    counts: Counter = field(default_factory=Counter)
    total: int = 0

    def add(self, next_action_type: str) -> None:
        self.counts[next_action_type] += 1
        self.total += 1

    def probabilities(self) -> Dict[str, float]:
        if self.total == 0:
            return {}
        return {
            action_type: _two_decimals(count / self.total)
            for action_type, count in self.counts.items()
        }


def _two_decimals(value: float) -> float:
    return float(f"{value:.2f}")


def count_transitions(sequences: OrderedUserSequence, current_action_type: str) -> TransitionFrequencyTable:
    table = TransitionFrequencyTable(current_action_type=current_action_type)
    wanted = current_action_type.casefold()

    for actions in sequences.values():
        for current, following in zip(actions, actions[1:]):
            if current.type.casefold() == wanted:
                table.add(following.type)

    return table


def estimate_next_action_probabilities(
    sequences: OrderedUserSequence,
    current_action_type: str,
) -> Dict[str, float]:
    """
    First-order estimate of P(next type | current type) over every user.

    Returns an empty mapping when no user performed ``current_action_type``
    followed by another action.
    """

    return count_transitions(sequences, current_action_type).probabilities()
