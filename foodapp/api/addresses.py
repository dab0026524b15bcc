"""Address book endpoints for signed-in customers."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_current_user
from foodapp.database import get_db
from foodapp.models import User
from foodapp.schemas import AddressCreate, AddressResponse, AddressUpdate, MessageResponse
from foodapp.services import address_service

router = APIRouter(prefix="/api/addresses", tags=["Addresses"])


@router.get("", response_model=List[AddressResponse])
async def list_addresses(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[AddressResponse]:
    """Default address first, then newest."""
    addresses = await address_service.list_addresses(db, user.id)
    return [AddressResponse.model_validate(a) for a in addresses]


@router.post("", response_model=AddressResponse, status_code=201)
async def create_address(
    data: AddressCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AddressResponse:
    return AddressResponse.model_validate(await address_service.create_address(db, user.id, data))


@router.get("/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AddressResponse:
    return AddressResponse.model_validate(await address_service.get_address(db, user.id, address_id))


@router.patch("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: int,
    data: AddressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AddressResponse:
    address = await address_service.update_address(db, user.id, address_id, data)
    return AddressResponse.model_validate(address)


@router.post("/{address_id}/default", response_model=AddressResponse)
async def set_default_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AddressResponse:
    address = await address_service.set_default_address(db, user.id, address_id)
    return AddressResponse.model_validate(address)


@router.delete("/{address_id}", response_model=MessageResponse)
async def delete_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await address_service.delete_address(db, user.id, address_id)
    return MessageResponse(message="Address deleted")
