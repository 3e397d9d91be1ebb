"""
Action analytics exceptions.
"""


class AnalyticsError(Exception):
    """Base exception for action analytics errors"""
    pass


class LoadError(AnalyticsError):
    """Raised when the fact base cannot be read or parsed"""
    pass


class UserNotFoundError(AnalyticsError):
    """Raised when a user lookup targets an unknown id"""

    def __init__(self, user_id: int):
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id
