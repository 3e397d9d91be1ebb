from __future__ import annotations

import logging
from typing import Optional, Tuple

from .configuration import AnalyticsConfig
from .dataset import FactBase
from .errors import UserNotFoundError
from .models import ActionRecord, NextActionProbabilities, UserRecord
from .referrals import ReferralGraph, build_referral_graph
from .sequences import OrderedUserSequence, build_sequences
from .transitions import estimate_next_action_probabilities

logger = logging.getLogger(__name__)


class ActionAnalyticsService:
    """
    Query facade over one :class:`FactBase` snapshot.

    The referral graph is built once here and only read afterwards, so a
    single instance can serve concurrent callers.
    """

    def __init__(self, fact_base: FactBase, config: Optional[AnalyticsConfig] = None) -> None:
        self.fact_base = fact_base
        self.config = config or AnalyticsConfig()
        self.referral_graph: ReferralGraph = build_referral_graph(
            fact_base.actions,
            referral_action_type=self.config.referral_action_type,
        )

    def sequences(self) -> OrderedUserSequence:
        return build_sequences(self.fact_base.actions)

    def get_actions_by_user(self, user_id: int) -> Tuple[ActionRecord, ...]:
        logger.info("get_actions_by_user called: user_id=%s", user_id)
        return build_sequences(self.fact_base.actions_by_user(user_id)).get(user_id, ())

    def get_user(self, user_id: int) -> UserRecord:
        logger.info("get_user called: user_id=%s", user_id)
        user = self.fact_base.user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_user_action_count(self, user_id: int) -> int:
        logger.info("get_user_action_count called: user_id=%s", user_id)
        self.get_user(user_id)
        return len(self.fact_base.actions_by_user(user_id))

    def next_action_probabilities(self, current_action_type: str) -> NextActionProbabilities:
        logger.info("next_action_probabilities called: action=%s", current_action_type)
        probabilities = estimate_next_action_probabilities(self.sequences(), current_action_type)
        return NextActionProbabilities(current_action_type=current_action_type, probabilities=probabilities)

    def referral_count(self, user_id: int) -> int:
        logger.info("referral_count called: user_id=%s", user_id)
        return self.referral_graph.count_descendants(user_id)
