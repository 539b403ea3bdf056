# core/errors.py

from typing import Iterable, Optional

from fastapi import HTTPException


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1: Supabase Auth / GoTrue / PostgREST APIError
    message = getattr(error, "message", None)
    if message:
        return str(message)

    # Case 2: Supabase errors with args (common)
    if error.args:
        return str(error.args[0])

    # Case 3: Plain string fallback
    return str(error) or error.__class__.__name__


# ============================================================
# Engine errors
# ============================================================
class RBACError(Exception):
    """Base class for access-control engine errors."""


class StoreError(RBACError):
    """The backing store was unreachable or rejected a query."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: {detail}")


class NotFoundError(RBACError):
    """A role, permission, assignment or resource does not exist."""


class SystemRoleError(RBACError):
    """A protected (system or frozen) role was about to be changed."""


def store_error(error: Exception, operation: str = "Store operation") -> StoreError:
    """
    Convert a Supabase / database exception into a StoreError.
    Returns (doesn't raise) so the caller can `raise ... from error`.
    """
    if isinstance(error, StoreError):
        return error
    return StoreError(operation, extract_supabase_error(error))


# ============================================================
# 403 conditions raised by the guard forms
# ============================================================
class AccessDenied(HTTPException):
    """Raised by the guard wrappers when a resource is out of reach."""

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            status_code=403,
            detail=f"Access denied to {resource_type}:{resource_id}",
        )


class PermissionDenied(HTTPException):
    """Raised by require_permission when one or more permissions are missing."""

    def __init__(self, missing: Iterable[str], reason: Optional[str] = None):
        self.missing_permissions = list(missing)
        super().__init__(
            status_code=403,
            detail=reason or f"Permission denied: {', '.join(self.missing_permissions)}",
        )
