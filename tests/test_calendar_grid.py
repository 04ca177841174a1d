import calendar
from datetime import date, datetime

import pytest

from county_booking import calendar_grid

TODAY = date(2026, 10, 19)


def test_month_grid_is_complete_for_every_month():
    for year in range(2023, 2029):
        for month in range(1, 13):
            weeks = calendar_grid.build_month_grid(year, month)
            assert all(len(week) == 7 for week in weeks)

            all_dates = [d for week in weeks for d in week]
            assert len(all_dates) == len(set(all_dates))

            in_month = [d for d in all_dates if d.month == month and d.year == year]
            _, days_in_month = calendar.monthrange(year, month)
            assert in_month == [date(year, month, day) for day in range(1, days_in_month + 1)]


def test_dates_sit_in_their_weekday_column():
    weeks = calendar_grid.build_month_grid(2026, 10)
    for week in weeks:
        for column, d in enumerate(week):
            # date.weekday() is Monday=0; the grid is Sunday=0
            assert (d.weekday() + 1) % 7 == column


def test_month_starting_sunday_and_ending_saturday_has_no_fill():
    # February 2026 runs from Sunday the 1st to Saturday the 28th
    weeks = calendar_grid.build_month_grid(2026, 2)
    assert len(weeks) == 4
    assert weeks[0][0] == date(2026, 2, 1)
    assert weeks[-1][-1] == date(2026, 2, 28)


def test_lead_in_comes_from_previous_month():
    weeks = calendar_grid.build_month_grid(2026, 10)
    assert weeks[0] == [
        date(2026, 9, 27),
        date(2026, 9, 28),
        date(2026, 9, 29),
        date(2026, 9, 30),
        date(2026, 10, 1),
        date(2026, 10, 2),
        date(2026, 10, 3),
    ]


def test_trail_out_comes_from_next_month():
    weeks = calendar_grid.build_month_grid(2026, 11)
    assert weeks[-1] == [
        date(2026, 11, 29),
        date(2026, 11, 30),
        date(2026, 12, 1),
        date(2026, 12, 2),
        date(2026, 12, 3),
        date(2026, 12, 4),
        date(2026, 12, 5),
    ]


def test_december_trails_into_next_year():
    weeks = calendar_grid.build_month_grid(2026, 12)
    assert weeks[-1][-1] == date(2027, 1, 2)


@pytest.mark.parametrize("month", [0, 13, -1])
def test_invalid_month(month):
    with pytest.raises(ValueError):
        calendar_grid.build_month_grid(2026, month)


def test_is_past_date():
    assert calendar_grid.is_past_date(date(2026, 10, 18), today=TODAY) is True
    assert calendar_grid.is_past_date(date(2026, 10, 19), today=TODAY) is False
    assert calendar_grid.is_past_date(date(2026, 10, 20), today=TODAY) is False


def test_is_past_date_ignores_time_of_day():
    assert calendar_grid.is_past_date(datetime(2026, 10, 19, 0, 0), today=TODAY) is False
    assert calendar_grid.is_past_date(datetime(2026, 10, 18, 23, 59), today=TODAY) is True


def test_is_today():
    assert calendar_grid.is_today(date(2026, 10, 19), today=TODAY) is True
    assert calendar_grid.is_today(datetime(2026, 10, 19, 23, 59), today=TODAY) is True
    assert calendar_grid.is_today(date(2026, 10, 20), today=TODAY) is False


def test_is_today_defaults_to_current_date():
    assert calendar_grid.is_today(date.today()) is True
    assert calendar_grid.is_past_date(date.today()) is False


def test_normalize_date():
    assert calendar_grid.normalize_date(datetime(2026, 10, 19, 15, 30)) == date(2026, 10, 19)
    assert calendar_grid.normalize_date(date(2026, 10, 19)) == date(2026, 10, 19)

    with pytest.raises(TypeError):
        calendar_grid.normalize_date("2026-10-19")


def test_normalize_aware_datetime_uses_local_date():
    moment = datetime.fromisoformat("2026-10-19T12:00:00+00:00")
    assert calendar_grid.normalize_date(moment) == moment.astimezone().date()


def test_shift_month():
    assert calendar_grid.shift_month(2026, 12, 1) == (2027, 1)
    assert calendar_grid.shift_month(2026, 1, -1) == (2025, 12)
    assert calendar_grid.shift_month(2026, 10, -22) == (2024, 12)
    assert calendar_grid.shift_month(2026, 10, 0) == (2026, 10)


def test_first_of_month_and_title():
    assert calendar_grid.first_of_month(datetime(2026, 10, 19, 8, 0)) == date(2026, 10, 1)
    assert calendar_grid.month_title(2026, 10) == "October 2026"
