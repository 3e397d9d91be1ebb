"""
Backend action analytics helpers.

This package loads a static log of users and the actions they performed and
answers two kinds of questions over it: which action tends to follow a given
one, and how many users a given user brought in through referrals.
"""

from .configuration import AnalyticsConfig  # noqa: F401
from .dataset import FactBase, FactBaseLoader  # noqa: F401
from .errors import AnalyticsError, LoadError, UserNotFoundError  # noqa: F401
from .models import ActionRecord, NextActionProbabilities, UserRecord  # noqa: F401
from .referrals import ReferralGraph, ReferralNode, build_referral_graph  # noqa: F401
from .repository import (  # noqa: F401
    FactRepository,
    InMemoryRepository,
    JSONFileRepository,
    RepositoryConfig,
    SQLFactRepository,
    UnavailableRepository,
    build_repository_from_env,
)
from .sequences import build_sequences  # noqa: F401
from .service import ActionAnalyticsService  # noqa: F401
from .transitions import (  # noqa: F401
    TransitionFrequencyTable,
    count_transitions,
    estimate_next_action_probabilities,
)
