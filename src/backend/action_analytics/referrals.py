"""
Referral graph built from invitation actions.

Each user has at most one inviter. The edge list comes straight from the
action log, so the graph is still treated as possibly cyclic when counting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import ActionRecord

REFER_USER = "REFER_USER"


@dataclass
class ReferralNode:
    user_id: int
    parent_id: Optional[int] = None
    children: List[int] = field(default_factory=list)


class ReferralGraph:
    def __init__(self) -> None:
        self._nodes: Dict[int, ReferralNode] = {}
        self._edges: Set[Tuple[int, int]] = set()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._nodes

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def node(self, user_id: int) -> Optional[ReferralNode]:
        return self._nodes.get(user_id)

    def add_edge(self, parent_user_id: int, child_user_id: int) -> None:
        """
        Record that ``parent_user_id`` invited ``child_user_id``.

        Self-invitations, repeated edges and attempts to give a user a second
        inviter are ignored.
        """

        if parent_user_id == child_user_id:
            return

        parent = self._get_or_create(parent_user_id)
        child = self._get_or_create(child_user_id)

        if child.parent_id is None:
            child.parent_id = parent_user_id
        elif child.parent_id != parent_user_id:
            return

        edge = (parent_user_id, child_user_id)
        if edge in self._edges:
            return
        self._edges.add(edge)
        parent.children.append(child_user_id)

    def count_descendants(self, user_id: int) -> int:
        """
        Number of distinct users reachable from ``user_id`` through child
        edges, not counting ``user_id`` itself. Unknown ids have none.
        """

        root = self._nodes.get(user_id)
        if root is None:
            return 0

        visited = {user_id}
        stack = [user_id]
        while stack:
            node = self._nodes[stack.pop()]
            for child_id in node.children:
                if child_id in visited:
                    continue
                visited.add(child_id)
                stack.append(child_id)

        return len(visited) - 1

    def _get_or_create(self, user_id: int) -> ReferralNode:
        node = self._nodes.get(user_id)
        if node is None:
            node = ReferralNode(user_id=user_id)
            self._nodes[user_id] = node
        return node


def build_referral_graph(records: Iterable[ActionRecord], referral_action_type: str = REFER_USER) -> ReferralGraph:
    """
    Apply every referral action in chronological order, so the earliest
    invitation of a user is the one that sticks.
    """

    wanted = referral_action_type.casefold()
    graph = ReferralGraph()
    referrals = sorted(
        (record for record in records if record.type.casefold() == wanted and record.target_user_id is not None),
        key=lambda record: record.sort_key,
    )
    for record in referrals:
        graph.add_edge(record.actor_user_id, record.target_user_id)
    return graph
