"""
Address Book Service

Each user has at most one default address. The first address saved becomes
the default; deleting the default promotes the most recently added one.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import NotFoundError
from foodapp.models import Address
from foodapp.schemas import AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)


async def list_addresses(db: AsyncSession, user_id: int) -> list[Address]:
    result = await db.execute(
        select(Address)
        .where(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
    )
    return list(result.scalars().all())


async def get_address(db: AsyncSession, user_id: int, address_id: int) -> Address:
    """Fetch an address owned by ``user_id``; other users' addresses are 404."""
    address = await db.get(Address, address_id)
    if address is None or address.user_id != user_id:
        raise NotFoundError("Address")
    return address


async def get_default_address(db: AsyncSession, user_id: int) -> Optional[Address]:
    result = await db.execute(
        select(Address).where(Address.user_id == user_id, Address.is_default.is_(True))
    )
    return result.scalars().first()


async def _clear_default(db: AsyncSession, user_id: int, keep_id: Optional[int] = None) -> None:
    query = update(Address).where(Address.user_id == user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.where(Address.id != keep_id)
    await db.execute(query.values(is_default=False).execution_options(synchronize_session="fetch"))


async def create_address(db: AsyncSession, user_id: int, data: AddressCreate) -> Address:
    has_any = await db.scalar(select(Address.id).where(Address.user_id == user_id).limit(1))
    make_default = data.is_default or has_any is None

    if make_default:
        await _clear_default(db, user_id)

    address = Address(user_id=user_id, **data.model_dump(exclude={"is_default"}))
    address.is_default = make_default
    db.add(address)
    await db.commit()
    logger.info(f"Address #{address.id} saved for user #{user_id} (default={make_default})")
    return address


async def update_address(
    db: AsyncSession, user_id: int, address_id: int, data: AddressUpdate
) -> Address:
    address = await get_address(db, user_id, address_id)
    changes = data.model_dump(exclude_unset=True)
    wants_default = changes.pop("is_default", None)

    for field, value in changes.items():
        setattr(address, field, value)

    if wants_default:
        await _clear_default(db, user_id, keep_id=address.id)
        address.is_default = True

    await db.commit()
    return address


async def set_default_address(db: AsyncSession, user_id: int, address_id: int) -> Address:
    address = await get_address(db, user_id, address_id)
    await _clear_default(db, user_id, keep_id=address.id)
    address.is_default = True
    await db.commit()
    return address


async def delete_address(db: AsyncSession, user_id: int, address_id: int) -> None:
    address = await get_address(db, user_id, address_id)
    was_default = address.is_default
    await db.delete(address)
    await db.flush()

    if was_default:
        result = await db.execute(
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.created_at.desc(), Address.id.desc())
            .limit(1)
        )
        replacement = result.scalar_one_or_none()
        if replacement is not None:
            replacement.is_default = True
            logger.info(f"Address #{replacement.id} promoted to default for user #{user_id}")

    await db.commit()
