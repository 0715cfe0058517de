from .identity import UserAuditEntryModel, UserModel

__all__ = [
    "UserModel",
    "UserAuditEntryModel",
]
