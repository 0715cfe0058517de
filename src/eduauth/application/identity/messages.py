"""Failure messages returned to callers of the identity use cases."""

AUTHENTICATION_FAILED = "Authentication failed"
ACCOUNT_LOCKED = "Account is locked due to multiple failed attempts"
ACCOUNT_INACTIVE = "Account is inactive"
ACCOUNT_UNVERIFIED = "Account is not verified"
ACCOUNT_NOT_ACTIVE = "User account is not active"

INVALID_TOKEN = "Invalid token"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
TOKEN_VERIFICATION_FAILED = "Token verification failed"
TOKEN_REFRESH_FAILED = "Failed to refresh token"

REGISTRATION_INVALID = "Registration request is invalid"
EMAIL_ALREADY_EXISTS = "User with this email already exists"
CREATION_FAILED = "Failed to create user account"

USER_NOT_FOUND = "User not found"
USER_LOOKUP_FAILED = "Failed to load user account"
CURRENT_PASSWORD_INCORRECT = "Current password is incorrect"
PASSWORD_TOO_WEAK = "Password does not meet security requirements"
PASSWORD_CHANGE_FAILED = "Failed to change password"
UPDATE_FAILED = "Failed to update user account"
PROFILE_INVALID = "Profile update is invalid"
