# config parameters for the action analytics service

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel

ENV_PREFIX = "ACTION_ANALYTICS_"


class AnalyticsConfig(BaseModel):
    """Configuration for the action analytics service."""

    referral_action_type: str = "REFER_USER"
    """Action type whose actor invited the target user"""

    log_level: str = "INFO"
    """Root log level applied when the HTTP app starts"""

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "AnalyticsConfig":
        """Build a config where ``ACTION_ANALYTICS_<FIELD>`` env vars win over ``overrides``."""
        overrides = overrides or {}
        values: Dict[str, Any] = {
            field_name: os.environ.get(f"{ENV_PREFIX}{field_name.upper()}", overrides.get(field_name))
            for field_name in cls.model_fields
        }
        return cls(**{k: v for k, v in values.items() if v is not None})
