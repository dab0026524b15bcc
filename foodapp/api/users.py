"""
User endpoints and the identity provider webhook.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_current_user
from foodapp.database import get_db
from foodapp.models import User
from foodapp.schemas import UserResponse, UserStatsResponse, UserUpdate, WebhookAck
from foodapp.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])


@router.post(
    "/api/webhooks/auth",
    response_model=WebhookAck,
    tags=["Webhooks"],
    summary="Identity Provider Webhook",
)
async def auth_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> WebhookAck:
    """
    Receive svix-signed user events from the identity provider.

    - user.created / user.updated: create or update the local user
    - user.deleted: deactivate the local user
    """
    body = await request.body()
    result = await user_service.handle_auth_webhook(db, body, dict(request.headers))
    logger.info(f"Auth webhook: {result['event_type']} (handled={result['handled']})")
    return WebhookAck(**result)


@router.get("/api/users/me", response_model=UserResponse, summary="My Profile")
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch("/api/users/me", response_model=UserResponse, summary="Update My Profile")
async def update_me(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.update_profile(db, user, data))


@router.get("/api/users/me/stats", response_model=UserStatsResponse, summary="My Order Stats")
async def get_my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserStatsResponse:
    return UserStatsResponse(**await user_service.user_stats(db, user))
