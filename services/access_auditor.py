# services/access_auditor.py

from typing import Any, Dict, Optional

from core.logging_config import logger
from models.rbac import AuditRecord


class AccessAuditor:
    """
    Appends one access_audit_log row per decision.

    Audit writes are best effort: a failure is logged and swallowed so the
    caller's primary operation never depends on it.
    """

    def __init__(self, store, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    def audit(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        action: str,
        success: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditRecord]:
        if not self.enabled:
            return None

        try:
            record = AuditRecord(
                user_id=user_id,
                resource_type=str(resource_type),
                resource_id=str(resource_id),
                action=action,
                success=success,
                metadata=metadata or {},
            )
            self.store.insert_audit_record(record)
        except Exception as e:
            logger.error(
                f"Error logging access audit for user {user_id} on "
                f"{resource_type}:{resource_id} ({action}): {e}"
            )
            return None

        return record
