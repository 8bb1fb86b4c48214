import csv
import io
from datetime import date, datetime

import pytest
from pydantic import ValidationError as SchemaValidationError

from college_leave.models.leave_request import LeaveStatus
from college_leave.schemas.leave import DateRange, LeaveBalanceRecord, LeaveFilter, LeaveRequestRecord
from college_leave.services import leave_query


def _record(id, **overrides):
    data = {
        "id": id,
        "employee_id": f"E{id}",
        "employee_name": f"Employee {id}",
        "department": "Computer Science",
        "leave_type": "Vacation",
        "start_date": date(2023, 6, 15),
        "end_date": date(2023, 6, 22),
        "reason": "Family trip",
        "status": LeaveStatus.PENDING,
        "request_date": datetime(2023, 6, id, 9, 0),
    }
    data.update(overrides)
    return LeaveRequestRecord(**data)


@pytest.fixture
def requests():
    return [
        _record(1, employee_name="Dana Cole", status=LeaveStatus.APPROVED),
        _record(2, employee_name="Ali Rahman", start_date=date(2023, 7, 1), end_date=date(2023, 7, 3)),
        _record(3, employee_name="Mia Wong", status=LeaveStatus.REJECTED,
                start_date=date(2023, 6, 1), end_date=date(2023, 6, 2), leave_type="Sick Leave"),
        _record(4, employee_name="Sam Ortiz", department="Mathematics", status=LeaveStatus.APPROVED,
                start_date=date(2023, 6, 18), end_date=date(2023, 6, 19)),
    ]


def test_duration_is_inclusive():
    assert _record(1).duration == 8
    assert _record(2, end_date=date(2023, 6, 15)).duration == 1


def test_filter_without_spec_keeps_everything(requests):
    assert leave_query.filter_requests(requests) == requests
    assert leave_query.filter_requests(requests, LeaveFilter()) == requests


def test_filter_is_idempotent(requests):
    criteria = LeaveFilter(department="Computer Science", status=LeaveStatus.PENDING)
    once = leave_query.filter_requests(requests, criteria)
    assert leave_query.filter_requests(once, criteria) == once
    assert [r.id for r in once] == [2]


def test_search_matches_name_or_employee_id(requests):
    by_name = leave_query.filter_requests(requests, LeaveFilter(search_text="dana"))
    by_id = leave_query.filter_requests(requests, LeaveFilter(search_text="e4"))
    assert [r.id for r in by_name] == [1]
    assert [r.id for r in by_id] == [4]


def test_date_range_keeps_overlapping_requests(requests):
    touching_end = LeaveFilter(date_range=DateRange(start=date(2023, 6, 22), end=date(2023, 6, 30)))
    after = LeaveFilter(date_range=DateRange(start=date(2023, 6, 23), end=date(2023, 6, 30)))
    open_start = LeaveFilter(date_range=DateRange(end=date(2023, 6, 10)))

    assert [r.id for r in leave_query.filter_requests(requests, touching_end)] == [1]
    assert leave_query.filter_requests(requests, after) == []
    assert [r.id for r in leave_query.filter_requests(requests, open_start)] == [3]


def test_date_range_rejects_reversed_bounds():
    with pytest.raises(SchemaValidationError):
        DateRange(start=date(2023, 6, 30), end=date(2023, 6, 1))


def test_year_and_month_ranges():
    assert leave_query.year_range(2023) == DateRange(start=date(2023, 1, 1), end=date(2023, 12, 31))
    assert leave_query.month_range(2024, 2).end == date(2024, 2, 29)


def test_sort_by_duration(requests):
    ordered = leave_query.sort_requests(requests, "duration", descending=False)
    assert [r.id for r in ordered] == [3, 4, 2, 1]


def test_sort_rejects_unknown_key(requests):
    with pytest.raises(ValueError):
        leave_query.sort_requests(requests, "salary")


def test_count_by_status_of_nothing_is_empty():
    assert leave_query.count_by_status([]) == {}


def test_percentages_over_zero_total_are_zero():
    percentages = leave_query.status_percentages({})
    assert set(percentages) == set(LeaveStatus)
    assert all(value == 0 for value in percentages.values())
    assert leave_query.percentage(3, 0) == 0


def test_percentage_rounds_half_up():
    assert leave_query.percentage(1, 8) == 13
    assert leave_query.percentage(1, 3) == 33
    assert leave_query.percentage(2, 3) == 67


def test_summarize(requests):
    summary = leave_query.summarize(requests)
    assert summary.total == 4
    assert summary.counts == {"approved": 2, "pending": 1, "rejected": 1}
    assert summary.percentages["approved"] == 50
    assert summary.percentages["info-needed"] == 0


def test_requests_on_date(requests):
    covering = leave_query.requests_on_date(requests, date(2023, 6, 18))
    assert [r.id for r in covering] == [1, 4]
    scoped = leave_query.requests_on_date(requests, date(2023, 6, 18), department="Mathematics")
    assert [r.id for r in scoped] == [4]


def test_department_statistics(requests):
    balances = [
        LeaveBalanceRecord(employee_id="E1", leave_type="Vacation", total_days=20, used_days=8, remaining_days=12),
        LeaveBalanceRecord(employee_id="E2", leave_type="Vacation", total_days=20, used_days=2, remaining_days=18),
    ]
    stats = leave_query.department_statistics(
        requests, "Computer Science", today=date(2023, 6, 20), balances=balances
    )
    assert stats.summary.total == 3
    assert stats.summary.percentages["approved"] == 33
    assert stats.employees_with_requests == 3
    assert stats.on_leave_today == 1
    assert stats.upcoming_leaves == 1
    assert stats.average_leave_duration == 8.0
    assert stats.leave_utilization == 25


def test_department_statistics_without_requests():
    stats = leave_query.department_statistics([], "History", today=date(2023, 6, 20))
    assert stats.summary.total == 0
    assert stats.average_leave_duration == 0.0
    assert stats.leave_utilization == 0


def test_export_csv(requests):
    content = leave_query.export_csv(requests[:1])
    rows = list(csv.DictReader(io.StringIO(content)))
    assert list(rows[0].keys()) == leave_query.EXPORT_COLUMNS
    assert rows[0]["employee_name"] == "Dana Cole"
    assert rows[0]["status"] == "approved"
    assert rows[0]["duration"] == "8"
