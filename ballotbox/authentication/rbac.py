# ballotbox/authentication/rbac.py

from enum import Enum
from functools import wraps
from flask import abort, current_app
from flask_jwt_extended import get_jwt, verify_jwt_in_request

# Role-Based Access Control. Admin and Voter are separate identities, told
# apart by the `role` claim of the access token.

class UserRole(Enum):
    ADMIN = "admin"
    VOTER = "voter"

class Permission(Enum):
    VOTE = "vote"
    VIEW_OWN_STATUS = "view_own_status"
    VIEW_RESULTS = "view_results"
    VIEW_LIVE_RESULTS = "view_live_results"
    MANAGE_POSITIONS = "manage_positions"
    MANAGE_CANDIDATES = "manage_candidates"
    MANAGE_VOTERS = "manage_voters"
    MANAGE_ELECTIONS = "manage_elections"

# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    UserRole.VOTER: [
        Permission.VOTE,
        Permission.VIEW_OWN_STATUS,
        Permission.VIEW_RESULTS,
    ],
    UserRole.ADMIN: [
        Permission.VIEW_RESULTS,
        Permission.VIEW_LIVE_RESULTS,
        Permission.MANAGE_POSITIONS,
        Permission.MANAGE_CANDIDATES,
        Permission.MANAGE_VOTERS,
        Permission.MANAGE_ELECTIONS,
    ],
}

class RBACService:
    def has_permission(self, user_role, permission):
        try:
            if isinstance(user_role, str):
                user_role = UserRole(user_role)
            if isinstance(permission, str):
                permission = Permission(permission)
        except ValueError:
            return False
        return permission in ROLE_PERMISSIONS.get(user_role, [])

rbac_service = RBACService()

def current_role():
    return get_jwt().get("role")

# Decorator for required permission; validates the JWT itself
def require_permission(permission):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            role = current_role()
            if not rbac_service.has_permission(role, permission):
                current_app.logger.info(f"Permission {permission.value} denied for role {role}")
                abort(403)
            return func(*args, **kwargs)
        return wrapper
    return decorator
