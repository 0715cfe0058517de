"""Concrete SQLAlchemy repository for the identity context."""
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eduauth.domain.identity.entities import User
from eduauth.domain.identity.permissions import UserRole
from eduauth.domain.identity.repositories import (
    ConcurrentUpdateError,
    DuplicateEmailError,
    RepositoryError,
    UserNotFoundError,
)
from eduauth.domain.identity.value_objects import Email, PasswordHash
from eduauth.domain.shared.entities import AuditAction, AuditEntry
from eduauth.infrastructure.database.models.identity import UserAuditEntryModel, UserModel


class UserRepository:
    """Writes go through a version-guarded UPDATE plus the new audit rows.

    Both happen inside one savepoint, so a conflict or constraint violation
    leaves neither behind and the caller's session stays usable.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        return await self._fetch_one(select(UserModel).where(UserModel.id == user_id))

    async def get_by_email(self, email: str) -> User | None:
        return await self._fetch_one(select(UserModel).where(UserModel.email == email))

    async def create(self, user: User) -> User:
        try:
            async with self._session.begin_nested():
                self._session.add(UserModel(**_user_columns(user), id=user.id, created_at=user.created_at,
                                            created_by=user.created_by))
                # No relationship() between the tables, so the parent row goes first explicitly
                await self._session.flush()
                self._add_audit_rows(user.id, user.audit_log, first_sequence=1)
                await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateEmailError(str(user.email)) from exc
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to create user") from exc
        user.mark_committed()
        return user

    async def update(self, user_id: UUID, user: User) -> User:
        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id, UserModel.version == user.committed_version)
            .values(**_user_columns(user))
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
                if result.rowcount == 0:
                    exists = await self._session.scalar(
                        select(func.count()).select_from(UserModel).where(UserModel.id == user_id)
                    )
                    if not exists:
                        raise UserNotFoundError(str(user_id))
                    raise ConcurrentUpdateError(
                        f"user {user_id}: expected version {user.committed_version}"
                    )
                self._add_audit_rows(
                    user_id, user.pending_audit_entries, first_sequence=user.committed_version
                )
                await self._session.flush()
        except IntegrityError as exc:
            if await self._email_taken_by_other(str(user.email), user_id):
                raise DuplicateEmailError(str(user.email)) from exc
            # Another writer already used these audit sequence numbers
            raise ConcurrentUpdateError(f"user {user_id}: audit sequence taken") from exc
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to update user {user_id}") from exc
        user.mark_committed()
        return user

    async def count(self) -> int:
        try:
            return await self._session.scalar(select(func.count()).select_from(UserModel)) or 0
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to count users") from exc

    async def _fetch_one(self, stmt) -> User | None:
        try:
            result = await self._session.execute(stmt.execution_options(populate_existing=True))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            entries = await self._session.execute(
                select(UserAuditEntryModel)
                .where(UserAuditEntryModel.user_id == row.id)
                .order_by(UserAuditEntryModel.sequence)
            )
            return _to_user(row, list(entries.scalars()))
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to load user") from exc

    async def _email_taken_by_other(self, email: str, user_id: UUID) -> bool:
        owner = await self._session.scalar(select(UserModel.id).where(UserModel.email == email))
        return owner is not None and owner != user_id

    def _add_audit_rows(self, user_id: UUID, entries: list[AuditEntry], *, first_sequence: int) -> None:
        for sequence, entry in enumerate(entries, start=first_sequence):
            self._session.add(
                UserAuditEntryModel(
                    user_id=user_id,
                    sequence=sequence,
                    timestamp=entry.timestamp,
                    actor_id=entry.actor_id,
                    action=str(entry.action),
                    changes=entry.changes,
                )
            )


# ── Mappers ───────────────────────────────────────────────────────────────────

def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user_columns(user: User) -> dict:
    return {
        "email": str(user.email),
        "password_hash": str(user.password_hash),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "role": str(user.role),
        "school_id": user.school_id,
        "attributes": user.attributes,
        "is_active": user.is_active,
        "is_verified": user.is_verified,
        "failed_login_attempts": user.failed_login_attempts,
        "last_failed_login_at": user.last_failed_login_at,
        "last_login_at": user.last_login_at,
        "version": user.version,
        "updated_at": user.updated_at,
        "updated_by": user.updated_by,
    }


def _to_user(m: UserModel, entries: list[UserAuditEntryModel]) -> User:
    user = User(
        id=m.id,
        email=Email(m.email),
        password_hash=PasswordHash(m.password_hash),
        first_name=m.first_name,
        last_name=m.last_name,
        phone=m.phone,
        role=UserRole(m.role),
        school_id=m.school_id,
        attributes=dict(m.attributes or {}),
        is_active=m.is_active,
        is_verified=m.is_verified,
        failed_login_attempts=m.failed_login_attempts,
        last_failed_login_at=_aware(m.last_failed_login_at),
        last_login_at=_aware(m.last_login_at),
        version=m.version,
        audit_log=[
            AuditEntry(
                timestamp=_aware(e.timestamp),
                actor_id=e.actor_id,
                action=AuditAction(e.action),
                changes=e.changes,
            )
            for e in entries
        ],
        created_at=_aware(m.created_at),
        updated_at=_aware(m.updated_at),
        created_by=m.created_by,
        updated_by=m.updated_by,
    )
    user.mark_committed()
    return user
