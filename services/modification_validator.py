# services/modification_validator.py

from typing import Callable, Optional

from core import permissions as perms
from core.errors import StoreError
from core.logging_config import logger
from models.rbac import ModificationResult

# (operation, resource_type) → required permission
MODIFICATION_PERMISSIONS = {
    "create": {
        "tour": perms.TOURS_CREATE,
        "event": perms.EVENTS_CREATE,
        "staff": perms.STAFF_INVITE,
        "financial": perms.FINANCES_EDIT,
        "logistics": perms.LOGISTICS_EDIT,
    },
    "update": {
        "tour": perms.TOURS_EDIT,
        "event": perms.EVENTS_EDIT,
        "staff": perms.STAFF_MANAGE,
        "financial": perms.FINANCES_EDIT,
        "logistics": perms.LOGISTICS_EDIT,
    },
    "delete": {
        "tour": perms.TOURS_DELETE,
        "event": perms.EVENTS_DELETE,
        "staff": perms.STAFF_REMOVE,
        "financial": perms.FINANCES_EDIT,
        "logistics": perms.LOGISTICS_EDIT,
    },
}


def required_permission_for(operation: str, resource_type: str) -> Optional[str]:
    return MODIFICATION_PERMISSIONS.get(str(operation), {}).get(str(resource_type))


class ModificationValidator:
    """
    Approves or rejects create/update/delete attempts.

    `check_access(user_id, resource_type, resource_id, permission)` must
    raise StoreError on store failure rather than returning False, so the
    result can say why it was rejected.
    """

    def __init__(self, check_access: Callable[[str, str, str, str], bool]):
        self.check_access = check_access

    def validate(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        operation: str,
    ) -> ModificationResult:
        operation = str(operation)
        resource_type = str(resource_type)

        if operation not in MODIFICATION_PERMISSIONS:
            return ModificationResult(allowed=False, reason=f"Unknown operation: {operation}")

        required = required_permission_for(operation, resource_type)
        if required is None:
            return ModificationResult(allowed=False, reason=f"Unknown resource type: {resource_type}")

        try:
            allowed = self.check_access(user_id, resource_type, resource_id, required)
        except StoreError as e:
            logger.error(
                f"[store_error] validating {operation} on {resource_type}:{resource_id} "
                f"for user {user_id}: {e}"
            )
            return ModificationResult(allowed=False, reason="Validation error occurred")

        if not allowed:
            return ModificationResult(
                allowed=False,
                reason=f"Insufficient permissions for {operation} on {resource_type}",
            )

        return ModificationResult(allowed=True)
