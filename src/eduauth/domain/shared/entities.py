"""Base entity with identity, timestamps, an optimistic version and an audit trail."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, StrEnum
from typing import Any, ClassVar
from uuid import UUID, uuid4

REDACTED = "[REDACTED]"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditAction(StrEnum):
    UPDATE = "update"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    PASSWORD_CHANGED = "password_changed"
    UNLOCKED = "unlocked"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    VERIFIED = "verified"


@dataclass(frozen=True)
class AuditEntry:
    timestamp: datetime
    actor_id: str
    action: AuditAction
    changes: dict[str, dict[str, Any]]


def _snapshot(value: Any) -> Any:
    """Plain, JSON-friendly copy of a field value for the audit diff."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _snapshot(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_snapshot(v) for v in value]
    if hasattr(value, "value") and isinstance(value.value, str):
        return value.value
    return value


@dataclass(kw_only=True)
class AuditableEntity:
    """Every mutation goes through ``_apply_changes``.

    Invariant: ``version == 1 + len(audit_log)``. ``committed_version`` is the
    version last read from or written to the store; the store compares it with
    its own row to detect lost updates.
    """

    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    created_by: str | None = None
    updated_by: str | None = None
    version: int = 1
    audit_log: list[AuditEntry] = field(default_factory=list)
    committed_version: int = field(default=1, compare=False, repr=False)

    # Field names whose values never appear in the audit diff
    _redacted_fields: ClassVar[frozenset[str]] = frozenset()

    def _apply_changes(
        self,
        actor_id: str,
        action: AuditAction,
        updates: dict[str, Any],
        *,
        at: datetime | None = None,
    ) -> bool:
        """Set ``updates`` and record them as a single audit entry.

        Returns False, touching nothing, when no field actually changes.
        """
        changes: dict[str, dict[str, Any]] = {}
        for name, new in updates.items():
            if not hasattr(self, name):
                raise AttributeError(f"{type(self).__name__} has no field {name!r}")
            old = getattr(self, name)
            if old == new:
                continue
            if name in self._redacted_fields:
                changes[name] = {"from": REDACTED, "to": REDACTED}
            else:
                changes[name] = {"from": _snapshot(old), "to": _snapshot(new)}
        if not changes:
            return False

        timestamp = at or utcnow()
        for name in changes:
            setattr(self, name, updates[name])
        self.audit_log.append(
            AuditEntry(timestamp=timestamp, actor_id=actor_id, action=action, changes=changes)
        )
        self.version += 1
        self.updated_at = timestamp
        self.updated_by = actor_id
        return True

    @property
    def pending_audit_entries(self) -> list[AuditEntry]:
        """Entries appended since the last commit."""
        return self.audit_log[self.committed_version - 1:]

    def mark_committed(self) -> None:
        self.committed_version = self.version

    def field_history(self, name: str) -> list[AuditEntry]:
        return [e for e in self.audit_log if name in e.changes]

    def changes_by(self, actor_id: str) -> list[AuditEntry]:
        return [e for e in self.audit_log if e.actor_id == actor_id]
