"""Immutable value objects for the Identity bounded context."""
from dataclasses import dataclass
import re

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")


def normalize_email(raw: str) -> str:
    """Canonical lookup form: surrounding whitespace stripped, lower-cased."""
    return raw.strip().lower()


@dataclass(frozen=True)
class Email:
    value: str

    def __post_init__(self) -> None:
        if not _EMAIL_PATTERN.match(self.value):
            raise ValueError(f"Invalid email address: {self.value}")

    @classmethod
    def parse(cls, raw: str) -> "Email":
        return cls(normalize_email(raw))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PasswordHash:
    """Opaque wrapper for the hashed password string, never the raw password."""
    value: str

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "PasswordHash(<redacted>)"


@dataclass(frozen=True)
class PasswordPolicy:
    """The one password rule, shared by registration and password change."""
    min_length: int = 8

    def violations(self, password: str) -> list[str]:
        problems = []
        if len(password) < self.min_length:
            problems.append(f"Password must be at least {self.min_length} characters long")
        if not re.search(r"[A-Z]", password):
            problems.append("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", password):
            problems.append("Password must contain at least one lowercase letter")
        if not re.search(r"\d", password):
            problems.append("Password must contain at least one number")
        return problems

    def is_satisfied_by(self, password: str) -> bool:
        return not self.violations(password)


DEFAULT_PASSWORD_POLICY = PasswordPolicy()
