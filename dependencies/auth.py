from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from supabase import Client

from core.errors import AccessDenied, PermissionDenied
from core.logging_config import logger
from core.supabase_client import get_supabase_client
from services.access_service import AccessControlService


bearer_scheme = HTTPBearer()


# ============================================================
# Current User Model (identity only; permissions come from the
# access service, never from token metadata)
# ============================================================
class CurrentUser(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None


# ============================================================
# AUTH DECODING (Supabase: validates JWT via GoTrue)
# ============================================================
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:

    token = credentials.credentials

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    client: Client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        auth_resp = client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"Token validation failed: {e}")
        raise unauthorized

    if not auth_resp or not auth_resp.user or not auth_resp.user.email:
        raise unauthorized

    auth_user = auth_resp.user
    metadata = auth_user.user_metadata or {}

    return CurrentUser(
        id=auth_user.id,
        email=auth_user.email,
        full_name=metadata.get("full_name"),
    )


# ============================================================
# ACCESS SERVICE (built once at startup, see main.create_app)
# ============================================================
def get_access_service(request: Request) -> AccessControlService:
    service = getattr(request.app.state, "access_service", None)
    if service is None:
        raise HTTPException(500, "Access service not configured")
    return service


def _audit_metadata(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client is not None else None,
        "user_agent": request.headers.get("user-agent"),
        "path": request.url.path,
    }


# ============================================================
# RESOURCE GUARD
# ============================================================
def requires_resource_access(resource_type: str, permission: str, resource_param: str = "tour_id"):
    """
    Usage:
        @router.get(
            "/tours/{tour_id}/budget",
            dependencies=[Depends(requires_resource_access("financial", perms.FINANCES_VIEW))],
        )

    Reads the resource id from the `resource_param` path parameter,
    audits the decision and raises AccessDenied (403) on denial.
    """
    resource_type = str(resource_type)

    async def dependency(
        request: Request,
        current_user: CurrentUser = Depends(get_current_user),
        service: AccessControlService = Depends(get_access_service),
    ) -> CurrentUser:
        resource_id = request.path_params.get(resource_param)
        if not resource_id:
            raise HTTPException(400, f"Missing path parameter '{resource_param}'")

        allowed = await run_in_threadpool(
            service.can_access_resource, current_user.id, resource_type, resource_id, permission
        )
        await run_in_threadpool(
            service.audit_access,
            current_user.id,
            resource_type,
            resource_id,
            f"{request.method} {request.url.path}",
            allowed,
            _audit_metadata(request),
        )
        if not allowed:
            raise AccessDenied(resource_type, resource_id)
        return current_user

    return dependency


# ============================================================
# PERMISSION CHECK (optionally scoped to a tour path parameter)
# ============================================================
def requires_tour_permission(permission: str, tour_param: Optional[str] = "tour_id"):
    """
    Usage:
        @router.post("/tours/{tour_id}/staff", dependencies=[Depends(requires_tour_permission(perms.STAFF_INVITE))])
    """

    def dependency(
        request: Request,
        current_user: CurrentUser = Depends(get_current_user),
        service: AccessControlService = Depends(get_access_service),
    ) -> CurrentUser:
        tour_id = request.path_params.get(tour_param) if tour_param else None
        result = service.validate_permission(current_user.id, [permission], tour_id)
        if not result.is_valid:
            raise PermissionDenied(
                result.missing_permissions,
                f"Insufficient permissions: '{permission}' required",
            )
        return current_user

    return dependency
