"""
Caller context dependencies.

Authentication happens upstream; the presentation layer forwards who is
calling through headers. These dependencies turn them into a Caller and
enforce coarse role checks before the service layer applies its own.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header, HTTPException, status

from college_leave.schemas.auth import Caller, CallerRole

logger = logging.getLogger(__name__)


def get_caller(
    x_employee_id: Optional[str] = Header(None),
    x_role: Optional[str] = Header(None),
    x_department: Optional[str] = Header(None),
) -> Caller:
    """
    Builds the Caller from X-Employee-Id, X-Role and X-Department.
    """
    if not x_employee_id:
        logger.warning("Rejected request without caller context")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Employee-Id header",
        )
    try:
        role = CallerRole((x_role or CallerRole.EMPLOYEE.value).upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{x_role}'",
        )
    return Caller(employee_id=x_employee_id, role=role, department=x_department or None)


def require_role(allowed_roles: List[CallerRole]) -> Callable:
    """
    Dependency factory that checks if the caller has one of the allowed roles.

    Usage:
        @router.put("/balances/...")
        def set_quota(caller: Caller = Depends(require_role([CallerRole.ADMIN]))):
            ...
    """
    def role_checker(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return caller
    return role_checker


def require_reviewer():
    """Shorthand for requiring a reviewing role."""
    return require_role([CallerRole.ADMIN, CallerRole.REVIEWER])


def require_admin():
    """Shorthand for requiring admin role only."""
    return require_role([CallerRole.ADMIN])
