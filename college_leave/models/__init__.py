# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import leave_request, leave_attachment, leave_status_change, leave_balance

# Explicit class exports for cleaner imports
from .leave_request import LeaveRequest, LeaveStatus
from .leave_attachment import LeaveAttachment
from .leave_status_change import LeaveStatusChange
from .leave_balance import LeaveBalance

__all__ = [
    "LeaveRequest",
    "LeaveStatus",
    "LeaveAttachment",
    "LeaveStatusChange",
    "LeaveBalance",
]
