"""Argon2id password hashing using argon2-cffi, off the event loop."""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import cached_property

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from eduauth.config import Settings
from eduauth.domain.identity.value_objects import PasswordHash


class PasswordService:
    """Hashes and verifies passwords on a bounded worker pool.

    Argon2 is deliberately slow; running it inline would stall every other
    request sharing the loop.
    """

    def __init__(
        self,
        *,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 2,
        max_workers: int = 4,
    ) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="password-hash"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordService":
        return cls(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
            max_workers=settings.password_hash_workers,
        )

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def _verify_sync(self, raw_password: str, password_hash: str) -> bool:
        try:
            return self._hasher.verify(password_hash, raw_password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    async def hash_password(self, raw_password: str) -> PasswordHash:
        """Hash a raw password using Argon2id. Returns an opaque PasswordHash."""
        return PasswordHash(await self._run(self._hasher.hash, raw_password))

    async def verify_password(self, raw_password: str, password_hash: PasswordHash) -> bool:
        """Constant-effort check of a raw password against a stored hash."""
        return await self._run(self._verify_sync, raw_password, str(password_hash))

    async def verify_dummy(self, raw_password: str) -> None:
        """Spend the same effort as a real verification, for unknown accounts."""
        await self._run(self._verify_sync, raw_password, self._dummy_hash)

    def needs_rehash(self, password_hash: PasswordHash) -> bool:
        """True if the hash was created with outdated parameters and should be updated."""
        try:
            return self._hasher.check_needs_rehash(str(password_hash))
        except InvalidHashError:
            return True

    @cached_property
    def _dummy_hash(self) -> str:
        return self._hasher.hash("dummy-password-for-timing")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
