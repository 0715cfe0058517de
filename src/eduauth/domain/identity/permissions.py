"""Static role → permission mapping."""
from enum import StrEnum


class UserRole(StrEnum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"
    PARENT = "PARENT"
    SUPPORT = "SUPPORT"

    @classmethod
    def parse(cls, raw: str) -> "UserRole":
        """Case-insensitive lookup; ``SCHOOL_ADMIN`` is accepted for ADMIN."""
        value = raw.strip().upper()
        if value == "SCHOOL_ADMIN":
            return cls.ADMIN
        return cls(value)


class Permission(StrEnum):
    CREATE_USERS = "CREATE_USERS"
    READ_USERS = "READ_USERS"
    UPDATE_USERS = "UPDATE_USERS"
    DELETE_USERS = "DELETE_USERS"
    CREATE_CONTENT = "CREATE_CONTENT"
    READ_CONTENT = "READ_CONTENT"
    UPDATE_CONTENT = "UPDATE_CONTENT"
    DELETE_CONTENT = "DELETE_CONTENT"
    PUBLISH_CONTENT = "PUBLISH_CONTENT"
    ACCESS_AI_TOOLS = "ACCESS_AI_TOOLS"
    ACCESS_STUDENT_TOOLS = "ACCESS_STUDENT_TOOLS"
    VIEW_STUDENT_PROGRESS = "VIEW_STUDENT_PROGRESS"
    UPDATE_STUDENT_PROGRESS = "UPDATE_STUDENT_PROGRESS"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    EXPORT_DATA = "EXPORT_DATA"
    MANAGE_SCHOOL_SETTINGS = "MANAGE_SCHOOL_SETTINGS"


ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.ADMIN: frozenset({
        Permission.CREATE_USERS,
        Permission.READ_USERS,
        Permission.UPDATE_USERS,
        Permission.DELETE_USERS,
        Permission.CREATE_CONTENT,
        Permission.READ_CONTENT,
        Permission.UPDATE_CONTENT,
        Permission.DELETE_CONTENT,
        Permission.PUBLISH_CONTENT,
        Permission.VIEW_STUDENT_PROGRESS,
        Permission.VIEW_ANALYTICS,
        Permission.EXPORT_DATA,
        Permission.MANAGE_SCHOOL_SETTINGS,
    }),
    UserRole.TEACHER: frozenset({
        Permission.READ_USERS,
        Permission.CREATE_CONTENT,
        Permission.READ_CONTENT,
        Permission.UPDATE_CONTENT,
        Permission.ACCESS_AI_TOOLS,
        Permission.VIEW_STUDENT_PROGRESS,
        Permission.UPDATE_STUDENT_PROGRESS,
        Permission.VIEW_ANALYTICS,
        Permission.EXPORT_DATA,
    }),
    UserRole.STUDENT: frozenset({
        Permission.READ_CONTENT,
        Permission.ACCESS_STUDENT_TOOLS,
    }),
    UserRole.PARENT: frozenset({
        Permission.READ_CONTENT,
        Permission.VIEW_STUDENT_PROGRESS,
    }),
    UserRole.SUPPORT: frozenset({
        Permission.READ_USERS,
        Permission.READ_CONTENT,
        Permission.VIEW_ANALYTICS,
    }),
}

# Role-specific profile attributes a user of that role may carry
ROLE_ATTRIBUTES: dict[UserRole, frozenset[str]] = {
    UserRole.TEACHER: frozenset({"subjects", "grade_levels", "employee_number"}),
    UserRole.STUDENT: frozenset({"grade_level", "student_number", "guardian_email"}),
    UserRole.ADMIN: frozenset({"admin_level"}),
    UserRole.PARENT: frozenset({"child_ids"}),
    UserRole.SUPPORT: frozenset({"department"}),
}

ROLE_ATTRIBUTE_DEFAULTS: dict[UserRole, dict[str, object]] = {
    UserRole.ADMIN: {"admin_level": "SCHOOL"},
}


def permissions_for(role: UserRole) -> frozenset[Permission]:
    return ROLE_PERMISSIONS[role]
