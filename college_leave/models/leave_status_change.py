from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from college_leave.database import Base


class LeaveStatusChange(Base):
    """Append-only status history of a leave request."""
    __tablename__ = "leave_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String(20), nullable=True)  # NULL for creation
    to_status = Column(String(20), nullable=False)
    actor_id = Column(String(64), nullable=False)
    actor_role = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    leave_request = relationship("LeaveRequest", back_populates="status_changes")
