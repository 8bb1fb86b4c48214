from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from college_leave.database import Base


class LeaveAttachment(Base):
    __tablename__ = "leave_attachments"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    location = Column(String(1024), nullable=False)  # Opaque reference; bytes live elsewhere
    media_type = Column(String(128), nullable=True)

    leave_request = relationship("LeaveRequest", back_populates="attachments")
