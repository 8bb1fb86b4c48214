"""
Balance Accounting

One LeaveBalance row per (employee, leave type). Approvals charge the
request's inclusive duration, clamped at the quota; reverting an approval
refunds it, floored at zero. So 0 <= used_days <= total_days always holds.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from college_leave.core.config import settings
from college_leave.core.exceptions import ValidationError
from college_leave.models.leave_balance import LeaveBalance
from college_leave.schemas.leave import LeaveBalanceRecord, LeaveRequestRecord
from college_leave.services.base import BaseService

_registry_lock = threading.Lock()
# (employee_id, leave_type) -> [lock, holders]; entries are dropped once nobody holds or waits
_key_locks: Dict[Tuple[str, str], list] = {}


@contextmanager
def balance_lock(employee_id: str, leave_type: str):
    """Serialize read-modify-write of one balance within this process."""
    key = (employee_id, leave_type)
    with _registry_lock:
        entry = _key_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _key_locks[key]


class BalanceLedger(BaseService):

    def _select_for_update(self, employee_id: str, leave_type: str) -> Optional[LeaveBalance]:
        stmt = (
            select(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.leave_type == leave_type)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _load_for_update(self, employee_id: str, leave_type: str) -> LeaveBalance:
        balance = self._select_for_update(employee_id, leave_type)
        if balance is not None:
            return balance
        try:
            # Savepoint: another worker may insert the same row first
            with self.db.begin_nested():
                balance = LeaveBalance(
                    employee_id=employee_id,
                    leave_type=leave_type,
                    total_days=settings.leave.quota_for(leave_type),
                    used_days=0.0,
                )
                self.db.add(balance)
        except IntegrityError:
            self.log_warning(
                f"{leave_type} balance of {employee_id} was created concurrently; reloading it"
            )
            balance = self._select_for_update(employee_id, leave_type)
        return balance

    def on_approve(self, request: LeaveRequestRecord) -> LeaveBalanceRecord:
        balance = self._load_for_update(request.employee_id, request.leave_type)
        wanted = balance.used_days + request.duration
        if wanted > balance.total_days:
            self.log_warning(
                f"Clamping {request.leave_type} balance of {request.employee_id}: "
                f"{wanted} days requested against a quota of {balance.total_days}",
                leave_request_id=request.id,
            )
        balance.used_days = min(wanted, balance.total_days)
        self.db.flush()
        return LeaveBalanceRecord.model_validate(balance)

    def on_revert_approval(self, request: LeaveRequestRecord) -> LeaveBalanceRecord:
        balance = self._load_for_update(request.employee_id, request.leave_type)
        balance.used_days = max(0.0, balance.used_days - request.duration)
        self.db.flush()
        return LeaveBalanceRecord.model_validate(balance)

    def set_quota(self, employee_id: str, leave_type: str, total_days: float) -> LeaveBalanceRecord:
        if total_days < 0:
            raise ValidationError("total_days must not be negative", field="total_days")
        if settings.leave.leave_types and leave_type not in settings.leave.leave_types:
            raise ValidationError(f"Unknown leave type '{leave_type}'", field="leave_type")
        balance = self._load_for_update(employee_id, leave_type)
        balance.total_days = total_days
        balance.used_days = min(balance.used_days, total_days)
        self.db.flush()
        return LeaveBalanceRecord.model_validate(balance)

    def get(self, employee_id: str, leave_type: str) -> Optional[LeaveBalanceRecord]:
        stmt = (
            select(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.leave_type == leave_type)
            .execution_options(populate_existing=True)
        )
        balance = self.db.execute(stmt).scalar_one_or_none()
        return LeaveBalanceRecord.model_validate(balance) if balance else None

    def balances_for(self, employee_ids: Iterable[str]) -> List[LeaveBalanceRecord]:
        ids = list(employee_ids)
        if not ids:
            return []
        stmt = (
            select(LeaveBalance)
            .where(LeaveBalance.employee_id.in_(ids))
            .order_by(LeaveBalance.employee_id, LeaveBalance.leave_type)
            .execution_options(populate_existing=True)
        )
        return [LeaveBalanceRecord.model_validate(b) for b in self.db.execute(stmt).scalars().all()]
