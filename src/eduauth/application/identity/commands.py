"""Identity use-case commands: login, register, refresh, password and account changes.

Every command returns a ``Result``. Expected failures (bad input, bad
credentials, duplicate email) come back as failures with an ``ErrorKind``;
store and signing-key problems are logged here and surfaced as a generic
INFRASTRUCTURE failure.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from eduauth.config import Settings
from eduauth.domain.identity.entities import User
from eduauth.domain.identity.permissions import ROLE_ATTRIBUTE_DEFAULTS, ROLE_ATTRIBUTES, UserRole
from eduauth.domain.identity.repositories import (
    ConcurrentUpdateError,
    DuplicateEmailError,
    IUserRepository,
    RepositoryError,
)
from eduauth.domain.identity.value_objects import (
    DEFAULT_PASSWORD_POLICY,
    Email,
    PasswordHash,
    PasswordPolicy,
    normalize_email,
)
from eduauth.domain.shared.entities import utcnow
from eduauth.domain.shared.result import ErrorKind, Result
from eduauth.infrastructure.auth.jwt import InvalidTokenError, TokenCodec, TokenConfigurationError
from eduauth.infrastructure.auth.password import PasswordService

from . import messages

SYSTEM_ACTOR = "system"
_PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9\s\-()]{6,19}$")

Mutation = Callable[[User], bool]


@dataclass(frozen=True)
class AccountPolicy:
    lockout_cooldown: timedelta = timedelta(minutes=30)
    require_email_verification: bool = False
    max_write_conflict_retries: int = 20
    password_policy: PasswordPolicy = field(default=DEFAULT_PASSWORD_POLICY)

    @classmethod
    def from_settings(cls, settings: Settings) -> AccountPolicy:
        return cls(
            lockout_cooldown=timedelta(minutes=settings.lockout_cooldown_minutes),
            require_email_verification=settings.require_email_verification,
            max_write_conflict_retries=settings.max_write_conflict_retries,
        )


@dataclass(frozen=True)
class LoginResult:
    user: User
    access_token: str
    refresh_token: str
    expires_in: int


# ── Helpers ──────────────────────────────────────────────────────────────────

def _auth_failed() -> Result[Any]:
    # Identical for unknown email and wrong password
    return Result.fail(messages.AUTHENTICATION_FAILED, kind=ErrorKind.AUTHENTICATION)


def _ineligible(user: User) -> Result[Any]:
    if user.is_locked:
        message = messages.ACCOUNT_LOCKED
    elif not user.is_active:
        message = messages.ACCOUNT_INACTIVE
    else:
        message = messages.ACCOUNT_UNVERIFIED
    return Result.fail(
        message, {"account_state": str(user.account_state)}, kind=ErrorKind.AUTHENTICATION
    )


def _not_found() -> Result[Any]:
    return Result.fail(messages.USER_NOT_FOUND, kind=ErrorKind.NOT_FOUND)


def _validation_failed(summary: str, errors: dict[str, list[str]]) -> Result[Any]:
    flat = [problem for problems in errors.values() for problem in problems]
    return Result.fail(", ".join(flat) or summary, {"fields": errors}, kind=ErrorKind.VALIDATION)


def _check_name(errors: dict[str, list[str]], name: str, label: str, value: str | None) -> None:
    if not value or len(value.strip()) < 2:
        errors.setdefault(name, []).append(f"{label} must be at least 2 characters")


def _check_phone(errors: dict[str, list[str]], phone: str | None) -> None:
    if phone is not None and not _PHONE_PATTERN.match(phone):
        errors.setdefault("phone", []).append("Valid phone number is required")


async def _commit(
    user: User, mutate: Mutation, *, user_repo: IUserRepository, policy: AccountPolicy
) -> User | None:
    """Apply ``mutate`` to ``user`` and write it through.

    On a version conflict the user is re-read and ``mutate`` re-applied to the
    fresh copy; a mutation that no longer applies (returns False) is dropped.
    Returns the resulting user, or None if it disappeared from the store.
    """
    for _ in range(policy.max_write_conflict_retries + 1):
        if not mutate(user):
            return user
        try:
            return await user_repo.update(user.id, user)
        except ConcurrentUpdateError:
            fresh = await user_repo.get_by_id(user.id)
            if fresh is None:
                return None
            user = fresh
    raise ConcurrentUpdateError(
        f"user {user.id}: gave up after {policy.max_write_conflict_retries} conflicting writes"
    )


async def _release_expired_lock(
    user: User, *, now: datetime, user_repo: IUserRepository, policy: AccountPolicy, log: logging.Logger
) -> User | None:
    """Unlock a locked account whose cooldown has passed; other users pass through."""
    if not user.lock_expired(policy.lockout_cooldown, now):
        return user
    released = await _commit(
        user,
        lambda u: u.lock_expired(policy.lockout_cooldown, now) and u.unlock(SYSTEM_ACTOR, at=now),
        user_repo=user_repo,
        policy=policy,
    )
    if released is not None:
        log.info("Lockout cooldown elapsed", extra={"user_id": str(released.id)})
    return released


# ── Login ────────────────────────────────────────────────────────────────────

async def login_user(
    *,
    email: str,
    password: str,
    user_repo: IUserRepository,
    passwords: PasswordService,
    tokens: TokenCodec,
    policy: AccountPolicy,
    log: logging.Logger,
    now: datetime | None = None,
) -> Result[LoginResult]:
    """Authenticate by email and password and issue a fresh token pair."""
    now = now or utcnow()
    try:
        user = await user_repo.get_by_email(normalize_email(email))
        if user is None:
            await passwords.verify_dummy(password)
            log.info("Login rejected: unknown account")
            return _auth_failed()

        user = await _release_expired_lock(user, now=now, user_repo=user_repo, policy=policy, log=log)
        if user is None:
            return _auth_failed()

        if not user.can_login:
            log.info(
                "Login rejected: account not eligible",
                extra={"user_id": str(user.id), "account_state": str(user.account_state)},
            )
            return _ineligible(user)

        verified_hash = user.password_hash
        if not await passwords.verify_password(password, verified_hash):
            committed = await _commit(
                user, lambda u: u.record_failed_login(now), user_repo=user_repo, policy=policy
            )
            if committed is not None:
                log.info(
                    "Login rejected: wrong password",
                    extra={"user_id": str(committed.id), "failed_attempts": committed.failed_login_attempts},
                )
                if committed.is_locked:
                    log.warning("Account locked", extra={"user_id": str(committed.id)})
            return _auth_failed()

        rehashed: PasswordHash | None = None
        if passwords.needs_rehash(verified_hash):
            rehashed = await passwords.hash_password(password)

        def succeed(u: User) -> bool:
            # A password changed meanwhile invalidates what we just verified
            return u.password_hash == verified_hash and u.record_successful_login(now, rehashed)

        user = await _commit(user, succeed, user_repo=user_repo, policy=policy)
        if user is None:
            return _auth_failed()
        if user.password_hash not in (verified_hash, rehashed):
            return _auth_failed()
        if not user.can_login:
            return _ineligible(user)

        pair = tokens.issue_pair(user)
    except (RepositoryError, TokenConfigurationError):
        log.exception("Login failed")
        return Result.fail(messages.AUTHENTICATION_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    log.info("User logged in", extra={"user_id": str(user.id)})
    return Result.ok(
        LoginResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )
    )


# ── Registration ─────────────────────────────────────────────────────────────

async def register_user(
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    phone: str | None = None,
    school_id: UUID | None = None,
    attributes: dict[str, Any] | None = None,
    user_repo: IUserRepository,
    passwords: PasswordService,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    """Validate, hash and persist a new user of the given role."""
    errors: dict[str, list[str]] = {}

    parsed_email: Email | None = None
    try:
        parsed_email = Email.parse(email or "")
    except ValueError:
        errors["email"] = ["Valid email is required"]

    if not password:
        errors["password"] = ["Password is required"]
    else:
        problems = policy.password_policy.violations(password)
        if problems:
            errors["password"] = problems

    _check_name(errors, "first_name", "First name", first_name)
    _check_name(errors, "last_name", "Last name", last_name)
    _check_phone(errors, phone)

    parsed_role: UserRole | None = None
    try:
        parsed_role = UserRole.parse(role or "")
    except ValueError:
        errors["role"] = ["Valid role is required"]

    attributes = dict(attributes or {})
    if parsed_role is not None:
        unknown = sorted(set(attributes) - ROLE_ATTRIBUTES[parsed_role])
        if unknown:
            errors["attributes"] = [f"Unknown attributes for role {parsed_role}: {', '.join(unknown)}"]

    if errors or parsed_email is None or parsed_role is None:
        log.debug("Registration rejected", extra={"fields": sorted(errors)})
        return _validation_failed(messages.REGISTRATION_INVALID, errors)

    try:
        if await user_repo.get_by_email(str(parsed_email)) is not None:
            return Result.fail(messages.EMAIL_ALREADY_EXISTS, kind=ErrorKind.CONFLICT)

        user = User(
            email=parsed_email,
            password_hash=await passwords.hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=parsed_role,
            phone=phone,
            school_id=school_id,
            attributes={**ROLE_ATTRIBUTE_DEFAULTS.get(parsed_role, {}), **attributes},
            is_verified=not policy.require_email_verification,
        )
        user = await user_repo.create(user)
    except DuplicateEmailError:
        # Lost the race against a concurrent registration
        return Result.fail(messages.EMAIL_ALREADY_EXISTS, kind=ErrorKind.CONFLICT)
    except RepositoryError:
        log.exception("Registration failed")
        return Result.fail(messages.CREATION_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    log.info("User registered", extra={"user_id": str(user.id), "role": str(user.role)})
    return Result.ok(user)


# ── Token refresh ────────────────────────────────────────────────────────────

async def refresh_session(
    *,
    refresh_token: str,
    user_repo: IUserRepository,
    tokens: TokenCodec,
    policy: AccountPolicy,
    log: logging.Logger,
    now: datetime | None = None,
) -> Result[LoginResult]:
    """Rotate both tokens. Authorization fields come from the stored user, not the token."""
    now = now or utcnow()
    try:
        payload = tokens.decode_refresh(refresh_token)
        user = await user_repo.get_by_id(payload.user_id)
        if user is not None:
            user = await _release_expired_lock(user, now=now, user_repo=user_repo, policy=policy, log=log)
        if user is None:
            return Result.fail(messages.INVALID_REFRESH_TOKEN, kind=ErrorKind.AUTHENTICATION)
        if not user.can_login:
            return Result.fail(
                messages.ACCOUNT_NOT_ACTIVE,
                {"account_state": str(user.account_state)},
                kind=ErrorKind.AUTHENTICATION,
            )
        pair = tokens.issue_pair(user)
    except InvalidTokenError:
        return Result.fail(messages.INVALID_REFRESH_TOKEN, kind=ErrorKind.AUTHENTICATION)
    except (RepositoryError, TokenConfigurationError):
        log.exception("Token refresh failed")
        return Result.fail(messages.TOKEN_REFRESH_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    return Result.ok(
        LoginResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )
    )


# ── Password change ──────────────────────────────────────────────────────────

async def change_password(
    *,
    user_id: UUID,
    current_password: str,
    new_password: str,
    user_repo: IUserRepository,
    passwords: PasswordService,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[bool]:
    try:
        user = await user_repo.get_by_id(user_id)
        if user is None:
            return _not_found()

        current_hash = user.password_hash
        if not await passwords.verify_password(current_password, current_hash):
            log.info("Password change rejected: wrong current password", extra={"user_id": str(user_id)})
            return Result.fail(messages.CURRENT_PASSWORD_INCORRECT, kind=ErrorKind.AUTHENTICATION)

        problems = policy.password_policy.violations(new_password or "")
        if problems:
            return _validation_failed(messages.PASSWORD_TOO_WEAK, {"new_password": problems})

        new_hash = await passwords.hash_password(new_password)
        committed = await _commit(
            user,
            lambda u: u.password_hash == current_hash and u.change_password(new_hash, str(user_id)),
            user_repo=user_repo,
            policy=policy,
        )
        if committed is None:
            return _not_found()
        if committed.password_hash != new_hash:
            return Result.fail(messages.CURRENT_PASSWORD_INCORRECT, kind=ErrorKind.AUTHENTICATION)
    except RepositoryError:
        log.exception("Password change failed", extra={"user_id": str(user_id)})
        return Result.fail(messages.PASSWORD_CHANGE_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    log.info("Password changed", extra={"user_id": str(user_id)})
    return Result.ok(True)


# ── Account administration ───────────────────────────────────────────────────

async def _update_user(
    user_id: UUID,
    mutate: Mutation,
    *,
    event: str,
    user_repo: IUserRepository,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    try:
        user = await user_repo.get_by_id(user_id)
        if user is None:
            return _not_found()
        user = await _commit(user, mutate, user_repo=user_repo, policy=policy)
        if user is None:
            return _not_found()
    except RepositoryError:
        log.exception("%s failed", event, extra={"user_id": str(user_id)})
        return Result.fail(messages.UPDATE_FAILED, kind=ErrorKind.INFRASTRUCTURE)

    log.info(event, extra={"user_id": str(user_id), "version": user.version})
    return Result.ok(user)


async def unlock_account(
    *,
    user_id: UUID,
    actor_id: str,
    user_repo: IUserRepository,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    return await _update_user(
        user_id,
        lambda u: u.unlock(actor_id),
        event="Account unlocked",
        user_repo=user_repo,
        policy=policy,
        log=log,
    )


async def set_user_active(
    *,
    user_id: UUID,
    is_active: bool,
    actor_id: str,
    user_repo: IUserRepository,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    return await _update_user(
        user_id,
        lambda u: u.set_active(is_active, actor_id),
        event="Account activated" if is_active else "Account deactivated",
        user_repo=user_repo,
        policy=policy,
        log=log,
    )


async def mark_user_verified(
    *,
    user_id: UUID,
    actor_id: str,
    user_repo: IUserRepository,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    return await _update_user(
        user_id,
        lambda u: u.mark_verified(actor_id),
        event="Account verified",
        user_repo=user_repo,
        policy=policy,
        log=log,
    )


async def update_user_profile(
    *,
    user_id: UUID,
    actor_id: str,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    user_repo: IUserRepository,
    policy: AccountPolicy,
    log: logging.Logger,
) -> Result[User]:
    errors: dict[str, list[str]] = {}
    changes: dict[str, Any] = {}
    if first_name is not None:
        _check_name(errors, "first_name", "First name", first_name)
        changes["first_name"] = first_name.strip()
    if last_name is not None:
        _check_name(errors, "last_name", "Last name", last_name)
        changes["last_name"] = last_name.strip()
    if phone is not None:
        _check_phone(errors, phone)
        changes["phone"] = phone
    if errors:
        return _validation_failed(messages.PROFILE_INVALID, errors)

    return await _update_user(
        user_id,
        lambda u: u.update_profile(actor_id, **changes),
        event="Profile updated",
        user_repo=user_repo,
        policy=policy,
        log=log,
    )
