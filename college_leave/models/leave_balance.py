from sqlalchemy import Column, Integer, String, Float, UniqueConstraint
from college_leave.database import Base


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", name="uq_leave_balance_employee_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(64), nullable=False, index=True)
    leave_type = Column(String(64), nullable=False, index=True)  # e.g., "Vacation", "Sick Leave"
    total_days = Column(Float, nullable=False, default=0.0)
    used_days = Column(Float, nullable=False, default=0.0)

    @property
    def remaining_days(self) -> float:
        return max(0.0, self.total_days - self.used_days)
