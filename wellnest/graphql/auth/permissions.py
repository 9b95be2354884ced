from strawberry.types import Info
from strawberry.permission import BasePermission

from wellnest.core.logging_config import log_security_event


class IsAuthenticated(BasePermission):
    message = "Authentication required."

    def has_permission(self, source, info: Info, **kwargs):
        return bool(info.context.user)


class IsAdmin(BasePermission):
    message = "Admin access required."

    def has_permission(self, source, info: Info, **kwargs):
        user = info.context.user
        if user is not None and user.is_admin:
            return True
        if user is not None:
            log_security_event("graphql_admin_denied", f"user_id={user.id} field={info.field_name}")
        return False
