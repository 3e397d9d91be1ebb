from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ActionRecord:
    """
    Single entry of the action log.

    ``target_user_id`` is only meaningful for actions aimed at another user
    (e.g. ``REFER_USER``) and is ``None`` otherwise.
    """

    id: int
    type: str
    actor_user_id: int
    occurred_at: datetime
    target_user_id: Optional[int] = None

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        return self.occurred_at, self.id


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class NextActionProbabilities:
    """
    Probabilities of the action that follows ``current_action_type``.

    ``probabilities`` is a plain mapping and carries no meaningful order;
    use :meth:`ordered` whenever the result is displayed.
    """

    current_action_type: str
    probabilities: Dict[str, float] = field(default_factory=dict)

    def ordered(self) -> List[Tuple[str, float]]:
        """Highest probability first; ties fall back to the action type."""
        return sorted(self.probabilities.items(), key=lambda item: (-item[1], item[0]))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current_action_type,
            "probabilities": [
                {"type": action_type, "probability": probability}
                for action_type, probability in self.ordered()
            ],
        }
