from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from .configuration import AnalyticsConfig
from .dataset import FactBaseLoader
from .errors import LoadError, UserNotFoundError
from .models import ActionRecord
from .repository import build_repository_from_env
from .service import ActionAnalyticsService

logger = logging.getLogger(__name__)


class ActionPayload(BaseModel):
    id: int
    type: str
    user_id: int
    target_user: Optional[int] = None
    created_at: datetime


class UserPayload(BaseModel):
    id: int
    name: str
    created_at: datetime


class ActionCountResponse(BaseModel):
    count: int


class ProbabilityEntry(BaseModel):
    type: str
    probability: float


class NextActionResponse(BaseModel):
    current: str
    probabilities: List[ProbabilityEntry]


class ReferralCountResponse(BaseModel):
    user_id: int
    referral_count: int


class AnalyticsState:
    """Owns the loader and the service built from its snapshot."""

    def __init__(self, loader: Optional[FactBaseLoader], config: AnalyticsConfig) -> None:
        self.loader = loader
        self.config = config
        self._service: Optional[ActionAnalyticsService] = None
        self._lock = threading.Lock()

    def service(self) -> ActionAnalyticsService:
        if self.loader is None:
            raise HTTPException(
                status_code=500,
                detail=(
                    "Neither ACTION_ANALYTICS_DATABASE_URL nor ACTION_ANALYTICS_ACTIONS_PATH "
                    "is configured; no fact base is available."
                ),
            )
        try:
            fact_base = self.loader.get()
        except LoadError as exc:
            raise HTTPException(status_code=503, detail=f"Fact base failed to load: {exc}") from exc

        with self._lock:
            if self._service is None:
                self._service = ActionAnalyticsService(fact_base, self.config)
            return self._service


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _to_action_payload(action: ActionRecord) -> ActionPayload:
    return ActionPayload(
        id=action.id,
        type=action.type,
        user_id=action.actor_user_id,
        target_user=action.target_user_id,
        created_at=action.occurred_at,
    )


def _analytics(request: Request) -> ActionAnalyticsService:
    return request.app.state.analytics.service()


def create_app(
    loader: Optional[FactBaseLoader] = None,
    config: Optional[AnalyticsConfig] = None,
) -> FastAPI:
    config = config or AnalyticsConfig.from_env()
    configure_logging(config.log_level)
    if loader is None:
        repository = build_repository_from_env()
        loader = FactBaseLoader(repository) if repository is not None else None
        if loader is None:
            logger.warning("No fact source configured; analytics endpoints will fail")

    app = FastAPI(title="User Action Analytics API", version="0.1.0")
    app.state.analytics = AnalyticsState(loader, config)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/actions/next", response_model=NextActionResponse)
    def next_action_endpoint(request: Request, current: str = Query("")) -> NextActionResponse:
        if not current.strip():
            raise HTTPException(status_code=400, detail="current action parameter is required")
        result = _analytics(request).next_action_probabilities(current)
        return NextActionResponse(**result.as_dict())

    @app.get("/users/{user_id}", response_model=UserPayload)
    def user_endpoint(request: Request, user_id: int) -> UserPayload:
        try:
            user = _analytics(request).get_user(user_id)
        except UserNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return UserPayload(id=user.id, name=user.name, created_at=user.created_at)

    @app.get("/users/{user_id}/actions", response_model=List[ActionPayload])
    def user_actions_endpoint(request: Request, user_id: int) -> List[ActionPayload]:
        return [_to_action_payload(action) for action in _analytics(request).get_actions_by_user(user_id)]

    @app.get("/users/{user_id}/actions/count", response_model=ActionCountResponse)
    def user_action_count_endpoint(request: Request, user_id: int) -> ActionCountResponse:
        try:
            count = _analytics(request).get_user_action_count(user_id)
        except UserNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return ActionCountResponse(count=count)

    @app.get("/users/{user_id}/referrals", response_model=ReferralCountResponse)
    def referral_count_endpoint(request: Request, user_id: int) -> ReferralCountResponse:
        return ReferralCountResponse(user_id=user_id, referral_count=_analytics(request).referral_count(user_id))

    return app


app = create_app()
