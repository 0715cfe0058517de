"""User administration router: unlock, activate, deactivate, verify."""
from uuid import UUID

from fastapi import APIRouter

from eduauth.interfaces.api.v1.errors import raise_for_failure
from eduauth.interfaces.api.v1.schemas.identity import UserResponse
from eduauth.interfaces.dependencies import Facade, UserAdmin

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, facade: Facade, admin: UserAdmin):
    result = await facade.get_user(user_id)
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/{user_id}/unlock", response_model=UserResponse)
async def unlock_user(user_id: UUID, facade: Facade, admin: UserAdmin):
    result = await facade.unlock_account(user_id, str(admin.id))
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/{user_id}/activate", response_model=UserResponse)
async def activate_user(user_id: UUID, facade: Facade, admin: UserAdmin):
    result = await facade.set_active(user_id, True, str(admin.id))
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: UUID, facade: Facade, admin: UserAdmin):
    result = await facade.set_active(user_id, False, str(admin.id))
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/{user_id}/verify", response_model=UserResponse)
async def verify_user(user_id: UUID, facade: Facade, admin: UserAdmin):
    result = await facade.mark_verified(user_id, str(admin.id))
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)
