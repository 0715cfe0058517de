"""In-process user store: same contract as the SQL repository, no I/O."""
import copy
from uuid import UUID

from eduauth.domain.identity.entities import User
from eduauth.domain.identity.repositories import (
    ConcurrentUpdateError,
    DuplicateEmailError,
    UserNotFoundError,
)


class InMemoryUserRepository:
    """Stores deep copies so callers never share state with the store.

    Check-and-write sections contain no ``await``, which makes them atomic
    with respect to other tasks on the same event loop.
    """

    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}
        self._ids_by_email: dict[str, UUID] = {}

    async def get_by_email(self, email: str) -> User | None:
        user_id = self._ids_by_email.get(email)
        return self._copy(self._users[user_id]) if user_id is not None else None

    async def get_by_id(self, user_id: UUID) -> User | None:
        user = self._users.get(user_id)
        return self._copy(user) if user else None

    async def create(self, user: User) -> User:
        email = str(user.email)
        if email in self._ids_by_email:
            raise DuplicateEmailError(email)
        user.mark_committed()
        self._users[user.id] = self._copy(user)
        self._ids_by_email[email] = user.id
        return user

    async def update(self, user_id: UUID, user: User) -> User:
        stored = self._users.get(user_id)
        if stored is None:
            raise UserNotFoundError(str(user_id))
        if stored.version != user.committed_version:
            raise ConcurrentUpdateError(
                f"user {user_id}: stored version {stored.version}, "
                f"expected {user.committed_version}"
            )
        new_email = str(user.email)
        if new_email != str(stored.email):
            if new_email in self._ids_by_email:
                raise DuplicateEmailError(new_email)
            del self._ids_by_email[str(stored.email)]
            self._ids_by_email[new_email] = user_id
        user.mark_committed()
        self._users[user_id] = self._copy(user)
        return user

    async def count(self) -> int:
        return len(self._users)

    @staticmethod
    def _copy(user: User) -> User:
        clone = copy.deepcopy(user)
        clone.mark_committed()
        return clone
