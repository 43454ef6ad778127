# Utility functions for booking functionality
from datetime import date, datetime, time, timedelta
from itertools import groupby
from .period import TimeSlot

# Days shown on the calendar, starting from the Monday of the current week
VISIBLE_DAYS = 21
# Days that can be booked, counting today
BOOKABLE_DAYS = 14
MAX_USERS = 10


def slot_key(day: date, slot: TimeSlot) -> str:
    """
    Key of a booking in the document: ISO date and slot start joined by a dash.
    Ex: slot_key(date(2024, 6, 10), TimeSlot('08:00', '13:00')) -> '2024-06-10-08:00'
    """
    return f"{day.isoformat()}-{slot.start}"


def start_of_week(day: date) -> date:
    # Weeks start on Monday
    return day - timedelta(days=day.weekday())


def get_visible_days(today: date) -> list[date]:
    """
    Days displayed on the calendar: three full weeks beginning on the Monday of the week containing today.
    Independent of the bookable window, so some displayed days may be in the past.
    """
    first_week_start = start_of_week(today)
    return [first_week_start + timedelta(days=i) for i in range(VISIBLE_DAYS)]


def group_by_week(days: list[date]) -> list[list[date]]:
    """Group consecutive days into display rows by ISO week number."""
    return [list(week) for _, week in groupby(days, key=lambda day: day.isocalendar()[1])]


def get_booking_window(today: date) -> tuple[date, date]:
    """
    Bookable window (start, end) inclusive on both ends.
    today + 13 days = today and the next 13 days = 14 days total
    """
    return today, today + timedelta(days=BOOKABLE_DAYS - 1)


def is_in_window(day: date, window: tuple[date, date]) -> bool:
    start, end = window
    return start <= day <= end


def booking_date_iso(day: date) -> str:
    """
    Timestamp stored in a booking's "date" field: local midnight of the booked day with its UTC offset.
    Ex: '2024-06-10T00:00:00.000+02:00'
    """
    midnight = datetime.combine(day, time()).astimezone()
    return midnight.isoformat(timespec='milliseconds')


def parse_booking_date(value: str) -> date:
    """
    Inverse of booking_date_iso. Also accepts plain dates and the trailing 'Z' browsers produce.
    Timestamps with an offset are converted to local time first.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def format_day_label(day: date) -> str:
    # Ex: 'Monday, Jun 10'
    return f"{day:%A}, {day:%b} {day.day}"
