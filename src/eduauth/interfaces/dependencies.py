"""FastAPI dependency injection: store, codec, hasher, AuthFacade and current user."""
from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eduauth.application.identity.commands import AccountPolicy
from eduauth.config import get_settings
from eduauth.domain.identity.entities import User
from eduauth.domain.identity.permissions import Permission
from eduauth.domain.identity.repositories import IUserRepository
from eduauth.domain.shared.result import ErrorKind
from eduauth.infrastructure.auth.jwt import TokenCodec
from eduauth.infrastructure.auth.password import PasswordService
from eduauth.infrastructure.database.connection import get_db_session
from eduauth.infrastructure.database.repositories.identity import UserRepository
from eduauth.interfaces.facade import AuthFacade
from eduauth.logger import get_logger

_bearer = HTTPBearer(auto_error=False)


# ── Process-wide components ──────────────────────────────────────────────────

@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(get_settings())


@lru_cache
def get_password_service() -> PasswordService:
    return PasswordService.from_settings(get_settings())


# ── Request-scoped ───────────────────────────────────────────────────────────

async def get_user_repo() -> AsyncGenerator[IUserRepository, None]:
    async with get_db_session() as session:
        try:
            yield UserRepository(session)
        except HTTPException as exc:
            # Writes made before a failed Result (failed-login counter) must persist
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
                await session.commit()
            raise


async def get_facade(
    user_repo: Annotated[IUserRepository, Depends(get_user_repo)],
    tokens: Annotated[TokenCodec, Depends(get_token_codec)],
    passwords: Annotated[PasswordService, Depends(get_password_service)],
) -> AuthFacade:
    settings = get_settings()
    return AuthFacade(
        user_repo=user_repo,
        tokens=tokens,
        passwords=passwords,
        policy=AccountPolicy.from_settings(settings),
        logger=get_logger("eduauth.identity"),
        health_degraded_after_ms=settings.health_degraded_after_ms,
    )


# ── Auth ──────────────────────────────────────────────────────────────────────

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    facade: Annotated[AuthFacade, Depends(get_facade)],
) -> User:
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    result = await facade.verify_token(credentials.credentials)
    if result.is_failure:
        if result.kind is ErrorKind.INFRASTRUCTURE:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.error)
        raise _CREDENTIALS_EXCEPTION
    return result.data


def require_permission(permission: Permission) -> Callable:
    async def checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_permission(permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return checker


# Type aliases for cleaner signatures
Facade = Annotated[AuthFacade, Depends(get_facade)]
CurrentUser = Annotated[User, Depends(get_current_user)]
UserAdmin = Annotated[User, Depends(require_permission(Permission.UPDATE_USERS))]
