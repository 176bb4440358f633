# app/core/roles.py

ROLE_EMPLOYEE = "EMPLOYEE"
ROLE_MANAGER = "MANAGER"
ROLE_ADMIN = "ADMIN"

ALL_ROLES = [ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_ADMIN]

# Roles allowed to approve, reject and reimburse reports
APPROVER_ROLES = [ROLE_MANAGER, ROLE_ADMIN]


def is_approver(user) -> bool:
    return user is not None and user.role in APPROVER_ROLES
