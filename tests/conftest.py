"""
Shared fixtures: in-memory store, cheap argon2 parameters, a token codec with
fixed test secrets and a ready AuthFacade.
"""
import logging

import pytest

from eduauth.application.identity.commands import AccountPolicy
from eduauth.domain.identity.repositories import RepositoryError
from eduauth.infrastructure.auth.jwt import TokenCodec
from eduauth.infrastructure.auth.password import PasswordService
from eduauth.infrastructure.memory.identity import InMemoryUserRepository
from eduauth.interfaces.facade import AuthFacade

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
VALID_PASSWORD = "Abcdef12"
TEACHER_EMAIL = "teacher@example.com"


def make_password_service(**overrides) -> PasswordService:
    options = dict(time_cost=1, memory_cost=8, parallelism=1, max_workers=4)
    options.update(overrides)
    return PasswordService(**options)


def make_codec(**overrides) -> TokenCodec:
    options = dict(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)
    options.update(overrides)
    return TokenCodec(**options)


@pytest.fixture
def log() -> logging.Logger:
    return logging.getLogger("eduauth.tests")


@pytest.fixture
def passwords():
    service = make_password_service()
    yield service
    service.shutdown()


@pytest.fixture
def tokens() -> TokenCodec:
    return make_codec()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def policy() -> AccountPolicy:
    return AccountPolicy()


@pytest.fixture
def facade(user_repo, tokens, passwords, policy, log) -> AuthFacade:
    return AuthFacade(
        user_repo=user_repo,
        tokens=tokens,
        passwords=passwords,
        policy=policy,
        logger=log,
    )


@pytest.fixture
async def teacher(facade):
    result = await facade.register(
        email=TEACHER_EMAIL,
        password=VALID_PASSWORD,
        first_name="Ada",
        last_name="Lovelace",
        role="teacher",
    )
    assert result.is_success, result
    return result.data


class FailingUserRepository:
    """Store whose every call fails, for the infrastructure-error paths."""

    async def get_by_email(self, email):
        raise RepositoryError("store unavailable")

    async def get_by_id(self, user_id):
        raise RepositoryError("store unavailable")

    async def create(self, user):
        raise RepositoryError("store unavailable")

    async def update(self, user_id, user):
        raise RepositoryError("store unavailable")

    async def count(self):
        raise RepositoryError("store unavailable")
