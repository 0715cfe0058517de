"""Domain entities for the Identity bounded context."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any
from uuid import UUID

from eduauth.domain.shared.entities import AuditAction, AuditableEntity, utcnow

from .permissions import Permission, UserRole, permissions_for
from .value_objects import Email, PasswordHash

# Consecutive failed logins that lock an account
LOCKOUT_THRESHOLD = 5


class AccountState(StrEnum):
    ACTIVE_UNLOCKED = "active_unlocked"
    LOCKED = "locked"
    INACTIVE = "inactive"
    UNVERIFIED = "unverified"


@dataclass(kw_only=True)
class User(AuditableEntity):
    email: Email
    password_hash: PasswordHash
    first_name: str
    last_name: str
    role: UserRole
    phone: str | None = None
    school_id: UUID | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    is_verified: bool = False
    failed_login_attempts: int = 0
    last_failed_login_at: datetime | None = None
    last_login_at: datetime | None = None

    _redacted_fields = frozenset({"password_hash"})

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self) -> bool:
        return self.failed_login_attempts >= LOCKOUT_THRESHOLD

    @property
    def account_state(self) -> AccountState:
        if self.is_locked:
            return AccountState.LOCKED
        if not self.is_active:
            return AccountState.INACTIVE
        if not self.is_verified:
            return AccountState.UNVERIFIED
        return AccountState.ACTIVE_UNLOCKED

    @property
    def can_login(self) -> bool:
        return self.account_state is AccountState.ACTIVE_UNLOCKED

    @property
    def permissions(self) -> frozenset[Permission]:
        return permissions_for(self.role)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    def lock_expired(self, cooldown: timedelta, now: datetime | None = None) -> bool:
        """True when a locked account has sat out its cooldown period."""
        if not self.is_locked or cooldown <= timedelta(0) or self.last_failed_login_at is None:
            return False
        return self.last_failed_login_at + cooldown <= (now or utcnow())

    # ── Mutations: each returns False when it does not apply ─────────────────

    def record_failed_login(self, at: datetime | None = None) -> bool:
        if self.is_locked:
            return False
        at = at or utcnow()
        return self._apply_changes(
            str(self.id),
            AuditAction.LOGIN_FAILED,
            {"failed_login_attempts": self.failed_login_attempts + 1, "last_failed_login_at": at},
            at=at,
        )

    def record_successful_login(
        self, at: datetime | None = None, rehashed: PasswordHash | None = None
    ) -> bool:
        if not self.can_login:
            return False
        at = at or utcnow()
        updates: dict[str, Any] = {"failed_login_attempts": 0, "last_login_at": at}
        if rehashed is not None:
            updates["password_hash"] = rehashed
        return self._apply_changes(str(self.id), AuditAction.LOGIN_SUCCEEDED, updates, at=at)

    def unlock(self, actor_id: str, at: datetime | None = None) -> bool:
        if self.failed_login_attempts == 0:
            return False
        return self._apply_changes(
            actor_id, AuditAction.UNLOCKED, {"failed_login_attempts": 0}, at=at
        )

    def change_password(self, new_hash: PasswordHash, actor_id: str) -> bool:
        return self._apply_changes(
            actor_id, AuditAction.PASSWORD_CHANGED, {"password_hash": new_hash}
        )

    def set_active(self, is_active: bool, actor_id: str) -> bool:
        action = AuditAction.ACTIVATED if is_active else AuditAction.DEACTIVATED
        return self._apply_changes(actor_id, action, {"is_active": is_active})

    def mark_verified(self, actor_id: str) -> bool:
        return self._apply_changes(actor_id, AuditAction.VERIFIED, {"is_verified": True})

    def update_profile(self, actor_id: str, **fields: Any) -> bool:
        allowed = {"first_name", "last_name", "phone", "school_id", "attributes"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Not a profile field: {', '.join(sorted(unknown))}")
        return self._apply_changes(actor_id, AuditAction.UPDATE, fields)
