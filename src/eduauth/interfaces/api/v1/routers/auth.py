"""Auth router: register, login, refresh, me, change password."""
from fastapi import APIRouter, status

from eduauth.application.identity.commands import LoginResult
from eduauth.interfaces.api.v1.errors import raise_for_failure
from eduauth.interfaces.api.v1.schemas.identity import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from eduauth.interfaces.dependencies import CurrentUser, Facade

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(login: LoginResult) -> TokenResponse:
    return TokenResponse(
        access_token=login.access_token,
        refresh_token=login.refresh_token,
        expires_in=login.expires_in,
        user=UserResponse.from_user(login.user),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, facade: Facade):
    result = await facade.register(**body.model_dump())
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, facade: Facade):
    result = await facade.login(body.email, body.password)
    if result.is_failure:
        raise_for_failure(result)
    return _token_response(result.data)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, facade: Facade):
    result = await facade.refresh_token(body.refresh_token)
    if result.is_failure:
        raise_for_failure(result)
    return _token_response(result.data)


@router.get("/me", response_model=UserResponse)
async def me(current_user: CurrentUser):
    return UserResponse.from_user(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(body: ProfileUpdate, facade: Facade, current_user: CurrentUser):
    result = await facade.update_profile(
        current_user.id, str(current_user.id), **body.model_dump(exclude_none=True)
    )
    if result.is_failure:
        raise_for_failure(result)
    return UserResponse.from_user(result.data)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(body: ChangePasswordRequest, facade: Facade, current_user: CurrentUser):
    result = await facade.change_password(current_user.id, body.current_password, body.new_password)
    if result.is_failure:
        raise_for_failure(result)
