from sqlalchemy import Column, Integer, String, Date, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from college_leave.database import Base
import enum
from datetime import date, datetime, timezone


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    INFO_NEEDED = "info-needed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED})

# Every edge of the request lifecycle; anything absent is an invalid transition
ALLOWED_TRANSITIONS = {
    LeaveStatus.PENDING: frozenset({
        LeaveStatus.APPROVED,
        LeaveStatus.REJECTED,
        LeaveStatus.INFO_NEEDED,
        LeaveStatus.CANCELLED,
    }),
    LeaveStatus.INFO_NEEDED: frozenset({LeaveStatus.PENDING}),
}


def can_transition(current: LeaveStatus, target: LeaveStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def leave_duration(start_date: date, end_date: date) -> int:
    """Inclusive day count: a same-day request lasts one day."""
    return (end_date - start_date).days + 1


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)

    # Employee attributes denormalized at the time of the request
    employee_id = Column(String(64), nullable=False, index=True)
    employee_name = Column(String(255), nullable=False)
    department = Column(String(128), nullable=False, index=True)
    position = Column(String(128), nullable=True)

    leave_type = Column(String(64), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(500), nullable=False)
    contact_info = Column(String(255), nullable=True)
    substitute_employee = Column(String(255), nullable=True)

    # Stored as the enum value so MySQL and SQLite hold the same strings
    status = Column(String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)
    comments = Column(Text, nullable=True)  # Reviewer text from the latest review action
    info_response = Column(Text, nullable=True)

    request_date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    attachments = relationship(
        "LeaveAttachment",
        back_populates="leave_request",
        order_by="LeaveAttachment.position",
        cascade="all, delete-orphan",
    )
    status_changes = relationship(
        "LeaveStatusChange",
        back_populates="leave_request",
        order_by="LeaveStatusChange.id",
        cascade="all, delete-orphan",
    )

    @property
    def duration(self) -> int:
        return leave_duration(self.start_date, self.end_date)

    def __repr__(self):
        return f"<LeaveRequest {self.id} {self.employee_id} {self.leave_type} ({self.status})>"
