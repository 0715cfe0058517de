"""Store contract consumed by the identity use cases."""
from typing import Protocol
from uuid import UUID

from .entities import User


class RepositoryError(Exception):
    """Any failure of the backing store (connection lost, driver error, ...)."""


class DuplicateEmailError(RepositoryError):
    pass


class UserNotFoundError(RepositoryError):
    pass


class ConcurrentUpdateError(RepositoryError):
    """The stored row moved past ``user.committed_version`` since it was read."""


class IUserRepository(Protocol):
    async def get_by_email(self, email: str) -> User | None:
        """Lookup by the normalized email."""
        ...

    async def get_by_id(self, user_id: UUID) -> User | None: ...

    async def create(self, user: User) -> User:
        """Insert a new user; raises DuplicateEmailError on a taken email."""
        ...

    async def update(self, user_id: UUID, user: User) -> User:
        """Write fields, version and pending audit entries as one unit.

        Raises ConcurrentUpdateError if the stored version is not
        ``user.committed_version``.
        """
        ...

    async def count(self) -> int: ...
