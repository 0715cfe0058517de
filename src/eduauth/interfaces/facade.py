"""AuthFacade: the single entry point to the identity use cases.

Callers (the HTTP routers, other services embedding this package) go through
the facade instead of calling application functions directly.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from eduauth.application.identity import commands as id_commands
from eduauth.application.identity import queries as id_queries
from eduauth.application.identity.commands import AccountPolicy, LoginResult
from eduauth.domain.identity.entities import User
from eduauth.domain.identity.repositories import IUserRepository
from eduauth.domain.shared.entities import utcnow
from eduauth.domain.shared.health import DependencyHealth, HealthStatus, ServiceHealth, worst
from eduauth.domain.shared.result import Result
from eduauth.infrastructure.auth.jwt import TokenCodec
from eduauth.infrastructure.auth.password import PasswordService


class AuthFacade:
    """Aggregates the identity use cases around one store, codec and hasher."""

    def __init__(
        self,
        *,
        user_repo: IUserRepository,
        tokens: TokenCodec,
        passwords: PasswordService,
        policy: AccountPolicy | None = None,
        logger: logging.Logger,
        health_degraded_after_ms: float = 500,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._user_repo = user_repo
        self._tokens = tokens
        self._passwords = passwords
        self._policy = policy or AccountPolicy()
        self._log = logger
        self._health_degraded_after_ms = health_degraded_after_ms
        self._clock = clock

    # ── Authentication ────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> Result[LoginResult]:
        return await id_commands.login_user(
            email=email, password=password,
            user_repo=self._user_repo, passwords=self._passwords, tokens=self._tokens,
            policy=self._policy, log=self._log, now=self._clock(),
        )

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str,
        phone: str | None = None,
        school_id: UUID | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Result[User]:
        return await id_commands.register_user(
            email=email, password=password, first_name=first_name, last_name=last_name,
            role=role, phone=phone, school_id=school_id, attributes=attributes,
            user_repo=self._user_repo, passwords=self._passwords,
            policy=self._policy, log=self._log,
        )

    async def refresh_token(self, refresh_token: str) -> Result[LoginResult]:
        return await id_commands.refresh_session(
            refresh_token=refresh_token,
            user_repo=self._user_repo, tokens=self._tokens,
            policy=self._policy, log=self._log, now=self._clock(),
        )

    async def verify_token(self, access_token: str) -> Result[User]:
        return await id_queries.verify_access_token(
            token=access_token,
            user_repo=self._user_repo, tokens=self._tokens, log=self._log,
        )

    async def change_password(
        self, user_id: UUID, current_password: str, new_password: str
    ) -> Result[bool]:
        return await id_commands.change_password(
            user_id=user_id, current_password=current_password, new_password=new_password,
            user_repo=self._user_repo, passwords=self._passwords,
            policy=self._policy, log=self._log,
        )

    # ── Account administration ────────────────────────────────────────────────

    async def get_user(self, user_id: UUID) -> Result[User]:
        return await id_queries.get_user_by_id(user_id, self._user_repo, self._log)

    async def unlock_account(self, user_id: UUID, actor_id: str) -> Result[User]:
        return await id_commands.unlock_account(
            user_id=user_id, actor_id=actor_id,
            user_repo=self._user_repo, policy=self._policy, log=self._log,
        )

    async def set_active(self, user_id: UUID, is_active: bool, actor_id: str) -> Result[User]:
        return await id_commands.set_user_active(
            user_id=user_id, is_active=is_active, actor_id=actor_id,
            user_repo=self._user_repo, policy=self._policy, log=self._log,
        )

    async def mark_verified(self, user_id: UUID, actor_id: str) -> Result[User]:
        return await id_commands.mark_user_verified(
            user_id=user_id, actor_id=actor_id,
            user_repo=self._user_repo, policy=self._policy, log=self._log,
        )

    async def update_profile(self, user_id: UUID, actor_id: str, **fields: str | None) -> Result[User]:
        return await id_commands.update_user_profile(
            user_id=user_id, actor_id=actor_id, **fields,
            user_repo=self._user_repo, policy=self._policy, log=self._log,
        )

    # ── Health ────────────────────────────────────────────────────────────────

    async def _probe_store(self) -> DependencyHealth:
        start = time.perf_counter()
        try:
            await self._user_repo.count()
        except Exception as exc:  # any failure of the probe means the store is down
            self._log.warning("User store health probe failed", exc_info=True)
            return DependencyHealth(
                name="UserRepository",
                status=HealthStatus.UNHEALTHY,
                response_time_ms=(time.perf_counter() - start) * 1000,
                error=type(exc).__name__,
            )
        elapsed_ms = (time.perf_counter() - start) * 1000
        status = (
            HealthStatus.DEGRADED
            if elapsed_ms > self._health_degraded_after_ms
            else HealthStatus.HEALTHY
        )
        return DependencyHealth(name="UserRepository", status=status, response_time_ms=elapsed_ms)

    def _signing_status(self) -> HealthStatus:
        if not (self._tokens.access_secret_configured and self._tokens.refresh_secret_configured):
            return HealthStatus.UNHEALTHY
        if not self._tokens.secrets_distinct:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    async def health(self) -> ServiceHealth:
        store = await self._probe_store()
        signing = self._signing_status()
        return ServiceHealth(
            status=worst([store.status, signing]),
            dependencies=[store],
            metadata={
                "jwt_configured": self._tokens.access_secret_configured,
                "refresh_token_configured": self._tokens.refresh_secret_configured,
                "signing_keys_distinct": self._tokens.secrets_distinct,
            },
        )

    def shutdown(self) -> None:
        self._passwords.shutdown()
        self._log.info("Auth service shutdown completed")
