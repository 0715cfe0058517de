"""Identity use-case queries."""
import logging
from uuid import UUID

from eduauth.domain.identity.entities import User
from eduauth.domain.identity.repositories import IUserRepository, RepositoryError
from eduauth.domain.shared.result import ErrorKind, Result
from eduauth.infrastructure.auth.jwt import InvalidTokenError, TokenCodec, TokenConfigurationError

from . import messages


async def verify_access_token(
    *,
    token: str,
    user_repo: IUserRepository,
    tokens: TokenCodec,
    log: logging.Logger,
) -> Result[User]:
    """Resolve an access token to the live user record, not the token's snapshot."""
    try:
        payload = tokens.decode_access(token)
        user = await user_repo.get_by_id(payload.user_id)
    except InvalidTokenError:
        return Result.fail(messages.INVALID_TOKEN, kind=ErrorKind.AUTHENTICATION)
    except (RepositoryError, TokenConfigurationError):
        log.exception("Token verification failed")
        return Result.fail(messages.TOKEN_VERIFICATION_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    if user is None:
        return Result.fail(messages.INVALID_TOKEN, kind=ErrorKind.AUTHENTICATION)
    if not user.is_active:
        return Result.fail(messages.ACCOUNT_NOT_ACTIVE, kind=ErrorKind.AUTHENTICATION)
    return Result.ok(user)


async def get_user_by_id(
    user_id: UUID, user_repo: IUserRepository, log: logging.Logger
) -> Result[User]:
    try:
        user = await user_repo.get_by_id(user_id)
    except RepositoryError:
        log.exception("User lookup failed", extra={"user_id": str(user_id)})
        return Result.fail(messages.USER_LOOKUP_FAILED, kind=ErrorKind.INFRASTRUCTURE)
    if user is None:
        return Result.fail(messages.USER_NOT_FOUND, kind=ErrorKind.NOT_FOUND)
    return Result.ok(user)
