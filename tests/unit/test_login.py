"""
Name: Login Tests

Responsibilities:
  - Register → login round trip
  - Opaque, identical failure for unknown email and wrong password
  - Lockout after five consecutive failures, admin unlock and cooldown release
  - Inactive / unverified accounts are refused after identity is confirmed
"""
from datetime import timedelta

import pytest

from conftest import TEACHER_EMAIL, VALID_PASSWORD, make_password_service
from eduauth.application.identity import messages
from eduauth.application.identity.commands import AccountPolicy
from eduauth.domain.identity.entities import LOCKOUT_THRESHOLD
from eduauth.domain.shared.entities import AuditAction, utcnow
from eduauth.domain.shared.result import ErrorKind
from eduauth.interfaces.facade import AuthFacade

pytestmark = pytest.mark.unit


class TestSuccessfulLogin:
    async def test_register_then_login_succeeds(self, facade, teacher):
        result = await facade.login(TEACHER_EMAIL, VALID_PASSWORD)

        assert result.is_success
        assert str(result.data.user.email) == TEACHER_EMAIL
        assert result.data.user.id == teacher.id
        assert result.data.expires_in == 15 * 60
        assert result.data.access_token
        assert result.data.refresh_token

    async def test_email_lookup_ignores_case_and_whitespace(self, facade, teacher):
        result = await facade.login("  Teacher@Example.com ", VALID_PASSWORD)
        assert result.is_success

    async def test_success_records_login_and_is_audited(self, facade, user_repo, teacher):
        await facade.login(TEACHER_EMAIL, VALID_PASSWORD)

        stored = await user_repo.get_by_id(teacher.id)
        assert stored.last_login_at is not None
        assert stored.version == 2
        assert len(stored.audit_log) == 1
        assert stored.audit_log[0].action is AuditAction.LOGIN_SUCCEEDED

    async def test_success_resets_failure_counter(self, facade, user_repo, teacher):
        for _ in range(3):
            await facade.login(TEACHER_EMAIL, "Wrong1234")
        assert (await user_repo.get_by_id(teacher.id)).failed_login_attempts == 3

        assert (await facade.login(TEACHER_EMAIL, VALID_PASSWORD)).is_success
        assert (await user_repo.get_by_id(teacher.id)).failed_login_attempts == 0

    async def test_outdated_hash_is_upgraded_on_login(self, user_repo, tokens, log, teacher):
        stronger = make_password_service(time_cost=2)
        upgraded = AuthFacade(user_repo=user_repo, tokens=tokens, passwords=stronger, logger=log)
        try:
            before = (await user_repo.get_by_id(teacher.id)).password_hash
            assert (await upgraded.login(TEACHER_EMAIL, VALID_PASSWORD)).is_success

            after = await user_repo.get_by_id(teacher.id)
            assert after.password_hash != before
            assert not stronger.needs_rehash(after.password_hash)
            assert "password_hash" in after.audit_log[-1].changes
            assert (await upgraded.login(TEACHER_EMAIL, VALID_PASSWORD)).is_success
        finally:
            stronger.shutdown()


class TestOpaqueFailures:
    async def test_unknown_email_and_wrong_password_are_indistinguishable(self, facade, teacher):
        unknown = await facade.login("nobody@example.com", VALID_PASSWORD)
        wrong = await facade.login(TEACHER_EMAIL, "Wrong1234")

        assert unknown.is_failure and wrong.is_failure
        assert unknown == wrong
        assert unknown.error == messages.AUTHENTICATION_FAILED
        assert unknown.kind is ErrorKind.AUTHENTICATION
        assert unknown.details is None

    async def test_wrong_password_increments_counter(self, facade, user_repo, teacher):
        await facade.login(TEACHER_EMAIL, "Wrong1234")
        stored = await user_repo.get_by_id(teacher.id)
        assert stored.failed_login_attempts == 1
        assert stored.last_failed_login_at is not None
        assert stored.audit_log[-1].action is AuditAction.LOGIN_FAILED

    async def test_unknown_email_touches_no_account(self, facade, user_repo, teacher):
        await facade.login("nobody@example.com", "Wrong1234")
        assert (await user_repo.get_by_id(teacher.id)).version == 1


class TestLockout:
    async def _fail(self, facade, times):
        for _ in range(times):
            result = await facade.login(TEACHER_EMAIL, "Wrong1234")
            assert result.error == messages.AUTHENTICATION_FAILED

    async def test_five_failures_lock_and_correct_password_is_refused(self, facade, user_repo, teacher):
        await self._fail(facade, LOCKOUT_THRESHOLD)

        sixth = await facade.login(TEACHER_EMAIL, VALID_PASSWORD)
        assert sixth.is_failure
        assert sixth.error == messages.ACCOUNT_LOCKED
        assert sixth.details == {"account_state": "locked"}
        stored = await user_repo.get_by_id(teacher.id)
        assert stored.is_locked
        assert stored.failed_login_attempts == LOCKOUT_THRESHOLD

    async def test_attempts_after_lock_do_not_grow_counter(self, facade, user_repo, teacher):
        await self._fail(facade, LOCKOUT_THRESHOLD)
        for _ in range(3):
            result = await facade.login(TEACHER_EMAIL, "Wrong1234")
            assert result.error == messages.ACCOUNT_LOCKED
        assert (await user_repo.get_by_id(teacher.id)).failed_login_attempts == LOCKOUT_THRESHOLD

    async def test_admin_unlock_restores_login(self, facade, user_repo, teacher):
        await self._fail(facade, LOCKOUT_THRESHOLD)

        unlocked = await facade.unlock_account(teacher.id, actor_id="admin-1")
        assert unlocked.is_success
        assert unlocked.data.failed_login_attempts == 0

        assert (await facade.login(TEACHER_EMAIL, VALID_PASSWORD)).is_success
        stored = await user_repo.get_by_id(teacher.id)
        assert stored.failed_login_attempts == 0
        assert AuditAction.UNLOCKED in [e.action for e in stored.audit_log]

    async def test_cooldown_releases_lock(self, user_repo, tokens, passwords, log, facade, teacher):
        await self._fail(facade, LOCKOUT_THRESHOLD)
        policy = AccountPolicy(lockout_cooldown=timedelta(minutes=30))

        def facade_at(offset: timedelta) -> AuthFacade:
            return AuthFacade(
                user_repo=user_repo, tokens=tokens, passwords=passwords, policy=policy,
                logger=log, clock=lambda: utcnow() + offset,
            )

        too_early = await facade_at(timedelta(minutes=10)).login(TEACHER_EMAIL, VALID_PASSWORD)
        assert too_early.error == messages.ACCOUNT_LOCKED

        later = await facade_at(timedelta(minutes=31)).login(TEACHER_EMAIL, VALID_PASSWORD)
        assert later.is_success
        actions = [e.action for e in (await user_repo.get_by_id(teacher.id)).audit_log]
        assert actions[-2:] == [AuditAction.UNLOCKED, AuditAction.LOGIN_SUCCEEDED]

    async def test_cooldown_disabled_keeps_lock(self, user_repo, tokens, passwords, log, facade, teacher):
        await self._fail(facade, LOCKOUT_THRESHOLD)
        never = AuthFacade(
            user_repo=user_repo, tokens=tokens, passwords=passwords,
            policy=AccountPolicy(lockout_cooldown=timedelta(0)), logger=log,
            clock=lambda: utcnow() + timedelta(days=365),
        )
        assert (await never.login(TEACHER_EMAIL, VALID_PASSWORD)).error == messages.ACCOUNT_LOCKED


class TestEligibility:
    async def test_inactive_account_is_refused(self, facade, teacher):
        await facade.set_active(teacher.id, False, actor_id="admin-1")
        result = await facade.login(TEACHER_EMAIL, VALID_PASSWORD)
        assert result.error == messages.ACCOUNT_INACTIVE
        assert result.kind is ErrorKind.AUTHENTICATION

    async def test_unverified_account_is_refused_until_verified(self, user_repo, tokens, passwords, log):
        strict = AuthFacade(
            user_repo=user_repo, tokens=tokens, passwords=passwords,
            policy=AccountPolicy(require_email_verification=True), logger=log,
        )
        registered = await strict.register(
            email="student@example.com", password=VALID_PASSWORD,
            first_name="Alan", last_name="Turing", role="student",
        )
        assert not registered.data.is_verified

        refused = await strict.login("student@example.com", VALID_PASSWORD)
        assert refused.error == messages.ACCOUNT_UNVERIFIED

        await strict.mark_verified(registered.data.id, actor_id="mailer")
        assert (await strict.login("student@example.com", VALID_PASSWORD)).is_success
