from pydantic import BaseModel, ConfigDict
from typing import Optional
import enum


class CallerRole(str, enum.Enum):
    """
    Roles supplied by the upstream presentation layer.

    - ADMIN: college-wide leave administration (reviews any department)
    - REVIEWER: department head, reviews requests of their own department
    - EMPLOYEE: self-service access to their own requests
    """
    ADMIN = "ADMIN"
    REVIEWER = "REVIEWER"
    EMPLOYEE = "EMPLOYEE"


class Caller(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_id: str
    role: CallerRole = CallerRole.EMPLOYEE
    department: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == CallerRole.ADMIN

    @property
    def can_review(self) -> bool:
        """Check if caller may approve, reject or query leave requests."""
        return self.role in (CallerRole.ADMIN, CallerRole.REVIEWER)

    def reviews_department(self, department: str) -> bool:
        if self.is_admin:
            return True
        return self.role == CallerRole.REVIEWER and self.department == department
