"""
Name: Identity Value Object Tests

Responsibilities:
  - Email validation and normalisation
  - Canonical password policy
"""
import pytest

from eduauth.domain.identity.value_objects import (
    DEFAULT_PASSWORD_POLICY,
    Email,
    PasswordHash,
    normalize_email,
)

pytestmark = pytest.mark.unit


class TestEmail:
    def test_parse_normalizes_case_and_whitespace(self):
        assert str(Email.parse("  Ada.Lovelace@Example.COM ")) == "ada.lovelace@example.com"

    @pytest.mark.parametrize("raw", ["", "no-at-sign", "a@b", "two@@example.com", "sp ace@example.com"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError):
            Email.parse(raw)

    def test_normalize_email_is_idempotent(self):
        once = normalize_email("X@Y.org")
        assert normalize_email(once) == once


class TestPasswordPolicy:
    def test_minimum_policy_password_is_accepted(self):
        assert DEFAULT_PASSWORD_POLICY.is_satisfied_by("Abcdef12")

    def test_special_characters_are_not_required(self):
        assert DEFAULT_PASSWORD_POLICY.violations("Password1") == []

    @pytest.mark.parametrize(
        ("password", "fragment"),
        [
            ("Ab1", "at least 8 characters"),
            ("abcdefg1", "uppercase"),
            ("ABCDEFG1", "lowercase"),
            ("Abcdefgh", "number"),
        ],
    )
    def test_each_rule_reports_its_own_violation(self, password, fragment):
        problems = DEFAULT_PASSWORD_POLICY.violations(password)
        assert any(fragment in p for p in problems)

    def test_short_password_reports_all_missing_classes(self):
        assert len(DEFAULT_PASSWORD_POLICY.violations("abc")) == 3


def test_password_hash_repr_hides_value():
    assert "secret" not in repr(PasswordHash("secret"))
