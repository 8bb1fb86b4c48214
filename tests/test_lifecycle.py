import pytest

from college_leave.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from college_leave.models.leave_request import LeaveStatus
from college_leave.services.balance import BalanceLedger
from college_leave.services.leave_store import LeaveRequestStore
from college_leave.services.lifecycle import LeaveLifecycleService


@pytest.fixture
def lifecycle(db_session):
    return LeaveLifecycleService(db_session)


@pytest.fixture
def pending(lifecycle, make_request, employee):
    return lifecycle.submit(make_request(), employee)


def test_submit_and_approve_charges_balance(lifecycle, pending, reviewer, db_session):
    assert pending.status == LeaveStatus.PENDING
    assert pending.duration == 8

    approved = lifecycle.approve(pending.id, reviewer, "Enjoy")
    assert approved.status == LeaveStatus.APPROVED
    assert approved.comments == "Enjoy"

    balance = BalanceLedger(db_session).get("E1", "Vacation")
    assert balance.used_days == 8
    assert balance.total_days == 20
    assert balance.remaining_days == 12


def test_reject_requires_reason(lifecycle, pending, reviewer):
    with pytest.raises(ValidationError) as exc:
        lifecycle.reject(pending.id, reviewer, "   ")
    assert exc.value.field == "reason"
    assert LeaveRequestStore(lifecycle.db).get(pending.id).status == LeaveStatus.PENDING


def test_reject_records_reason(lifecycle, pending, reviewer, db_session):
    rejected = lifecycle.reject(pending.id, reviewer, "Exam week")
    assert rejected.status == LeaveStatus.REJECTED
    assert rejected.comments == "Exam week"
    assert BalanceLedger(db_session).get("E1", "Vacation") is None


def test_rejected_request_cannot_be_approved(lifecycle, pending, reviewer):
    lifecycle.reject(pending.id, reviewer, "Exam week")
    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(pending.id, reviewer)


def test_info_request_and_resubmit(lifecycle, pending, employee, reviewer):
    asked = lifecycle.request_info(pending.id, reviewer, "Who covers your lectures?")
    assert asked.status == LeaveStatus.INFO_NEEDED
    assert asked.comments == "Who covers your lectures?"

    # cannot be approved while waiting on the employee
    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(pending.id, reviewer)

    resubmitted = lifecycle.resubmit(pending.id, employee, "Dr. Patel covers CS101")
    assert resubmitted.status == LeaveStatus.PENDING
    assert resubmitted.info_response == "Dr. Patel covers CS101"
    assert lifecycle.approve(pending.id, reviewer).status == LeaveStatus.APPROVED


def test_info_request_requires_questions(lifecycle, pending, reviewer):
    with pytest.raises(ValidationError):
        lifecycle.request_info(pending.id, reviewer, "")


def test_resubmit_requires_response(lifecycle, pending, employee, reviewer):
    lifecycle.request_info(pending.id, reviewer, "Who covers your lectures?")
    with pytest.raises(ValidationError):
        lifecycle.resubmit(pending.id, employee, " ")


def test_resubmit_only_from_info_needed(lifecycle, pending, employee):
    with pytest.raises(InvalidTransitionError):
        lifecycle.resubmit(pending.id, employee, "Nothing was asked")


def test_only_owner_can_cancel(lifecycle, pending, employee, reviewer):
    with pytest.raises(ForbiddenError):
        lifecycle.cancel(pending.id, reviewer)

    cancelled = lifecycle.cancel(pending.id, employee)
    assert cancelled.status == LeaveStatus.CANCELLED

    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(pending.id, reviewer)


def test_employee_cannot_review(lifecycle, pending, employee):
    with pytest.raises(ForbiddenError):
        lifecycle.approve(pending.id, employee)


def test_reviewer_of_other_department_cannot_review(lifecycle, pending, other_reviewer, admin):
    with pytest.raises(ForbiddenError):
        lifecycle.reject(pending.id, other_reviewer, "Not my call")
    assert lifecycle.approve(pending.id, admin).status == LeaveStatus.APPROVED


def test_employee_files_only_for_themselves(lifecycle, make_request, employee, admin):
    on_behalf = make_request(employee_id="E2", employee_name="Ali Rahman")
    with pytest.raises(ForbiddenError):
        lifecycle.submit(on_behalf, employee)
    assert lifecycle.submit(on_behalf, admin).employee_id == "E2"


def test_approve_unknown_request(lifecycle, reviewer):
    with pytest.raises(NotFoundError):
        lifecycle.approve(404, reviewer)


def test_second_approval_fails_and_charges_once(lifecycle, pending, reviewer, admin, db_session):
    lifecycle.approve(pending.id, reviewer, "Enjoy")
    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(pending.id, admin, "Enjoy")
    assert BalanceLedger(db_session).get("E1", "Vacation").used_days == 8


def test_stale_reviewer_cannot_overwrite(session_factory, make_request, employee, reviewer, admin):
    first, second = session_factory(), session_factory()
    try:
        request_id = LeaveLifecycleService(first).submit(make_request(), employee).id
        # both reviewers opened the request while it was pending
        LeaveRequestStore(second).get(request_id)

        LeaveLifecycleService(first).approve(request_id, reviewer, "Enjoy")
        with pytest.raises(InvalidTransitionError):
            LeaveLifecycleService(second).reject(request_id, admin, "Too late")

        assert LeaveRequestStore(second).get(request_id).status == LeaveStatus.APPROVED
        assert BalanceLedger(second).get("E1", "Vacation").used_days == 8
    finally:
        first.close()
        second.close()


def test_approval_beyond_quota_is_clamped(lifecycle, make_request, employee, reviewer, db_session):
    # Personal leave defaults to 5 days
    request = lifecycle.submit(make_request(leave_type="Personal"), employee)
    lifecycle.approve(request.id, reviewer)
    balance = BalanceLedger(db_session).get("E1", "Personal")
    assert balance.used_days == 5
    assert balance.remaining_days == 0


def test_history_follows_lifecycle(lifecycle, pending, employee, reviewer):
    lifecycle.request_info(pending.id, reviewer, "Who covers your lectures?")
    lifecycle.resubmit(pending.id, employee, "Dr. Patel")
    lifecycle.approve(pending.id, reviewer, "Enjoy")

    history = LeaveRequestStore(lifecycle.db).history(pending.id)
    assert [h.to_status for h in history] == [
        LeaveStatus.PENDING,
        LeaveStatus.INFO_NEEDED,
        LeaveStatus.PENDING,
        LeaveStatus.APPROVED,
    ]
    assert history[-1].note == "Enjoy"
