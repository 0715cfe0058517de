"""
Name: Health Probe Tests

Responsibilities:
  - Store probe timing and failure reporting
  - Signing configuration: missing secret is unhealthy, shared secret degraded
"""
import pytest

from conftest import FailingUserRepository, make_codec
from eduauth.domain.shared.health import HealthStatus, worst
from eduauth.interfaces.facade import AuthFacade

pytestmark = pytest.mark.unit


def _facade(user_repo, passwords, log, **codec_overrides) -> AuthFacade:
    return AuthFacade(
        user_repo=user_repo, tokens=make_codec(**codec_overrides), passwords=passwords, logger=log
    )


class TestWorst:
    def test_orders_by_severity(self):
        assert worst([HealthStatus.HEALTHY, HealthStatus.DEGRADED]) is HealthStatus.DEGRADED
        assert worst([HealthStatus.UNHEALTHY, HealthStatus.DEGRADED]) is HealthStatus.UNHEALTHY
        assert worst([]) is HealthStatus.HEALTHY


class TestHealth:
    async def test_healthy_with_distinct_secrets(self, facade):
        report = await facade.health()

        assert report.status is HealthStatus.HEALTHY
        assert report.metadata == {
            "jwt_configured": True,
            "refresh_token_configured": True,
            "signing_keys_distinct": True,
        }
        [store] = report.dependencies
        assert store.name == "UserRepository"
        assert store.status is HealthStatus.HEALTHY
        assert store.response_time_ms >= 0

    async def test_shared_secret_is_degraded(self, user_repo, passwords, log):
        report = await _facade(user_repo, passwords, log, refresh_secret="test-access-secret").health()
        assert report.status is HealthStatus.DEGRADED
        assert report.metadata["signing_keys_distinct"] is False

    @pytest.mark.parametrize("missing", ["access_secret", "refresh_secret"])
    async def test_missing_secret_is_unhealthy(self, user_repo, passwords, log, missing):
        report = await _facade(user_repo, passwords, log, **{missing: ""}).health()
        assert report.status is HealthStatus.UNHEALTHY

    async def test_failing_store_is_unhealthy(self, passwords, log):
        report = await _facade(FailingUserRepository(), passwords, log).health()

        assert report.status is HealthStatus.UNHEALTHY
        [store] = report.dependencies
        assert store.status is HealthStatus.UNHEALTHY
        assert store.error == "RepositoryError"

    async def test_slow_store_is_degraded(self, user_repo, tokens, passwords, log):
        sluggish = AuthFacade(
            user_repo=user_repo, tokens=tokens, passwords=passwords, logger=log,
            health_degraded_after_ms=-1,
        )
        assert (await sluggish.health()).status is HealthStatus.DEGRADED
