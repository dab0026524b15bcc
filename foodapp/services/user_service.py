"""
User Service

Users are owned by the identity provider and mirrored here through its
signed webhook (svix). Local rows carry the role, the phone number used
for notifications and the loyalty balance.
"""

import json
import logging
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from svix.webhooks import Webhook, WebhookVerificationError

from foodapp import tasks
from foodapp.core.config import get_settings
from foodapp.core.errors import NotFoundError, ValidationError
from foodapp.core.utils import money
from foodapp.models import Order, OrderStatus, User, UserRole
from foodapp.schemas import UserUpdate

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


# =============================================================================
# IDENTITY WEBHOOK
# =============================================================================

def verify_auth_webhook(payload: bytes, headers: dict[str, str]) -> dict[str, Any]:
    """
    Verify the svix signature and return the event.

    Without a configured secret the payload is accepted unsigned, which
    is only allowed in development.
    """
    settings = get_settings()
    if not settings.auth_webhook_secret:
        if not settings.is_development:
            raise ValidationError("Auth webhook secret is not configured")
        try:
            return json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Invalid webhook payload")

    svix_headers = {name: headers.get(name) for name in SVIX_HEADERS}
    if not all(svix_headers.values()):
        raise ValidationError("Missing svix headers")

    try:
        return Webhook(settings.auth_webhook_secret).verify(payload, svix_headers)
    except WebhookVerificationError as e:
        logger.warning(f"Auth webhook rejected: {e}")
        raise ValidationError("Invalid webhook signature")


def _role_from_metadata(data: dict) -> Optional[UserRole]:
    role = (data.get("public_metadata") or {}).get("role")
    try:
        return UserRole(role) if role else None
    except ValueError:
        logger.warning(f"Unknown role '{role}' in identity metadata, ignored")
        return None


async def sync_user(db: AsyncSession, data: dict) -> User:
    """Create or update the local user for a ``user.created``/``user.updated`` event."""
    clerk_id = data.get("id")
    emails = data.get("email_addresses") or []
    if not clerk_id or not emails:
        raise ValidationError("User event is missing an id or email address")

    email = emails[0].get("email_address")
    phones = data.get("phone_numbers") or []
    phone = phones[0].get("phone_number") if phones else None
    role = _role_from_metadata(data)

    result = await db.execute(
        select(User).where(or_(User.clerk_id == clerk_id, User.email == email))
    )
    user = result.scalars().first()
    created = user is None

    if created:
        user = User(clerk_id=clerk_id, email=email, role=role or UserRole.CUSTOMER)
        db.add(user)
    else:
        user.clerk_id = clerk_id
        user.email = email
        if role is not None:
            user.role = role

    user.first_name = data.get("first_name")
    user.last_name = data.get("last_name")
    if phone:
        user.phone = phone
    user.is_active = True
    await db.commit()

    if created:
        logger.info(f"👤 User #{user.id} created from identity provider ({user.role.value})")
        if user.phone:
            tasks.enqueue(tasks.send_welcome_message, user.phone, user.first_name)
    else:
        logger.info(f"👤 User #{user.id} updated from identity provider")
    return user


async def deactivate_by_clerk_id(db: AsyncSession, clerk_id: str) -> Optional[User]:
    """``user.deleted``: keep the row for order history, block sign-in."""
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    user = result.scalar_one_or_none()
    if user is None:
        return None
    user.is_active = False
    await db.commit()
    logger.info(f"👤 User #{user.id} deactivated (deleted at identity provider)")
    return user


async def handle_auth_webhook(db: AsyncSession, payload: bytes, headers: dict[str, str]) -> dict:
    event = verify_auth_webhook(payload, headers)
    event_type = event.get("type")
    data = event.get("data") or {}

    if event_type in ("user.created", "user.updated"):
        await sync_user(db, data)
        return {"received": True, "handled": True, "event_type": event_type}
    if event_type == "user.deleted" and data.get("id"):
        user = await deactivate_by_clerk_id(db, data["id"])
        return {"received": True, "handled": user is not None, "event_type": event_type}

    return {"received": True, "handled": False, "event_type": event_type}


# =============================================================================
# PROFILE
# =============================================================================

async def get_by_clerk_id(db: AsyncSession, clerk_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


async def update_profile(db: AsyncSession, user: User, data: UserUpdate) -> User:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await db.commit()
    return user


async def user_stats(db: AsyncSession, user: User) -> dict:
    """Order count and spend, cancelled orders excluded."""
    row = (
        await db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total), 0),
                func.max(Order.created_at),
            ).where(Order.user_id == user.id, Order.status != OrderStatus.CANCELLED)
        )
    ).one()
    return {
        "total_orders": row[0] or 0,
        "total_spent": money(row[1]),
        "loyalty_points": user.loyalty_points,
        "last_order_at": row[2],
    }


# =============================================================================
# ADMIN
# =============================================================================

async def list_users(
    db: AsyncSession,
    *,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    conditions = []
    if role is not None:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.phone.ilike(pattern),
            )
        )

    total = await db.scalar(select(func.count(User.id)).where(*conditions)) or 0
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def set_active(db: AsyncSession, user_id: int, is_active: bool) -> User:
    user = await get_user(db, user_id)
    user.is_active = is_active
    await db.commit()
    logger.info(f"User #{user_id} {'activated' if is_active else 'deactivated'}")
    return user


async def set_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
    user = await get_user(db, user_id)
    user.role = role
    await db.commit()
    logger.info(f"User #{user_id} role → {role.value}")
    return user
