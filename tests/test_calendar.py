import copy
import unittest
from datetime import date
from booking_calendar.booking.booking_utils import booking_date_iso
from booking_calendar.booking.calendar import (BookingCalendar, AVAILABLE, BOOKED, DISABLED, OUTCOME_BOOKED,
                                               OUTCOME_CANCELLED, OUTCOME_FAILED, OUTCOME_REJECTED)
from booking_calendar.booking.error_utils import ApiError
from booking_calendar.booking.period import TIME_SLOTS

MONDAY = date(2024, 6, 10)
MORNING, AFTERNOON, EVENING = TIME_SLOTS


class FakeApi:
    """In-memory stand-in for the booking API that records every call."""

    def __init__(self, users=None, bookings=None, next_user_id=3, fail=()):
        self.document = {
            "users": dict(users if users is not None else {"1": "test1", "2": "test2"}),
            "bookings": dict(bookings or {}),
            "nextUserId": next_user_id,
        }
        self.fail = fail
        self.calls = []

    def _answer(self, name):
        if name in self.fail:
            raise ApiError("Failed", 500)
        return copy.deepcopy(self.document)

    def load_state(self):
        self.calls.append(("load_state",))
        return self._answer("load_state")

    def create_user(self, user_id, password):
        self.calls.append(("create_user", user_id, password))
        if "create_user" not in self.fail:
            self.document["users"][user_id] = password
            self.document["nextUserId"] = int(user_id) + 1
        return self._answer("create_user")

    def book_slot(self, user_id, date, slot, slot_key, replace=False):
        self.calls.append(("book_slot", user_id, date, slot, slot_key, replace))
        if "book_slot" not in self.fail:
            if replace:
                self.document["bookings"] = {key: booking for key, booking in self.document["bookings"].items()
                                             if booking["userId"] != user_id}
            self.document["bookings"][slot_key] = {"userId": user_id, "date": date, "slot": slot}
        return self._answer("book_slot")

    def reset(self):
        self.calls.append(("reset",))
        if "reset" not in self.fail:
            self.document["bookings"] = {}
        return self._answer("reset")


def booking(user_id, day=MONDAY, slot=MORNING):
    return {"userId": user_id, "date": booking_date_iso(day), "slot": slot.to_dict()}


class Dialogs:
    """Scripted prompt/confirm/alert callbacks."""

    def __init__(self, password=None, confirm_answer=True):
        self.password = password
        self.confirm_answer = confirm_answer
        self.prompts = []
        self.confirms = []
        self.alerts = []

    def prompt(self, message):
        self.prompts.append(message)
        return self.password

    def confirm(self, message):
        self.confirms.append(message)
        return self.confirm_answer

    def alert(self, message):
        self.alerts.append(message)


class BookingCalendarTest(unittest.TestCase):
    def make_calendar(self, api, today=MONDAY):
        calendar = BookingCalendar(api, today=today)
        self.assertTrue(calendar.load_state())
        api.calls.clear()
        return calendar

    def click(self, calendar, dialogs, day=MONDAY, slot=MORNING):
        return calendar.handle_slot_click(day, slot, dialogs.prompt, dialogs.confirm, dialogs.alert)

    def test_visible_range_from_monday(self):
        calendar = BookingCalendar(FakeApi(), today=MONDAY)
        self.assertEqual(calendar.booking_period, (MONDAY, date(2024, 6, 23)))
        self.assertEqual([len(week) for week in calendar.showing_days], [7, 7, 7])
        self.assertEqual(calendar.showing_days[0][0], MONDAY)
        self.assertEqual(calendar.showing_days[-1][-1], date(2024, 6, 30))
        self.assertTrue(calendar.is_slot_disabled(date(2024, 6, 24)))
        self.assertTrue(calendar.is_slot_disabled(date(2024, 6, 9)))
        self.assertFalse(calendar.is_slot_disabled(date(2024, 6, 23)))

    def test_visible_range_midweek(self):
        calendar = BookingCalendar(FakeApi(), today=date(2024, 6, 12))
        self.assertEqual(calendar.showing_days[0][0], MONDAY)
        self.assertEqual(calendar.booking_period[1], date(2024, 6, 25))
        # Monday and Tuesday of the first week are displayed but already past
        self.assertTrue(calendar.is_slot_disabled(date(2024, 6, 11)))
        self.assertFalse(calendar.is_slot_disabled(date(2024, 6, 25)))
        self.assertTrue(calendar.is_slot_disabled(date(2024, 6, 26)))

    def test_slot_state(self):
        calendar = self.make_calendar(FakeApi(bookings={"2024-06-10-08:00": booking("1")}))
        self.assertEqual(calendar.slot_state(MONDAY, MORNING), BOOKED)
        self.assertEqual(calendar.get_booking_for_slot(MONDAY, MORNING)["userId"], "1")
        self.assertEqual(calendar.slot_state(MONDAY, AFTERNOON), AVAILABLE)
        self.assertEqual(calendar.slot_state(date(2024, 6, 24), EVENING), DISABLED)
        self.assertEqual(calendar.available_user_slots, 8)

    def test_load_state_failure(self):
        calendar = BookingCalendar(FakeApi(fail=("load_state",)), today=MONDAY)
        self.assertFalse(calendar.load_state())
        self.assertEqual(calendar.users, {})

    def test_existing_user_books_slot(self):
        api = FakeApi()
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test2")
        self.assertEqual(self.click(calendar, dialogs, slot=EVENING), OUTCOME_BOOKED)
        self.assertEqual(dialogs.prompts, ['Enter your password:'])
        self.assertEqual(api.calls, [("book_slot", "2", booking_date_iso(MONDAY), EVENING.to_dict(),
                                      "2024-06-10-18:00", False)])
        self.assertEqual(calendar.bookings["2024-06-10-18:00"]["userId"], "2")
        self.assertEqual(calendar.current_user, "2")

    def test_new_user_is_registered_first(self):
        api = FakeApi()
        calendar = self.make_calendar(api)
        self.assertEqual(self.click(calendar, Dialogs(password="fresh")), OUTCOME_BOOKED)
        self.assertEqual([call[0] for call in api.calls], ["create_user", "book_slot"])
        self.assertEqual(api.calls[0], ("create_user", "3", "fresh"))
        self.assertEqual(calendar.users["3"], "fresh")
        self.assertEqual(calendar.next_user_id, 4)

    def test_eleventh_user_rejected_without_request(self):
        users = {str(i): f"pw{i}" for i in range(1, 11)}
        api = FakeApi(users=users, next_user_id=11)
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="eleventh")
        self.assertEqual(self.click(calendar, dialogs), OUTCOME_REJECTED)
        self.assertEqual(dialogs.alerts, ['Maximum number of users reached'])
        self.assertEqual(api.calls, [])
        self.assertEqual(calendar.available_user_slots, 0)

    def test_cancelled_password_prompt(self):
        api = FakeApi()
        calendar = self.make_calendar(api)
        for password in (None, ""):
            self.assertEqual(self.click(calendar, Dialogs(password=password)), OUTCOME_CANCELLED)
        self.assertEqual(api.calls, [])

    def test_disabled_slot_does_nothing(self):
        api = FakeApi()
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test1")
        self.assertEqual(self.click(calendar, dialogs, day=date(2024, 6, 24)), OUTCOME_REJECTED)
        self.assertEqual(dialogs.prompts, [])
        self.assertEqual(api.calls, [])

    def test_replace_declined(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")})
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test1", confirm_answer=False)
        self.assertEqual(self.click(calendar, dialogs, day=date(2024, 6, 11)), OUTCOME_CANCELLED)
        self.assertEqual(dialogs.confirms, ["You already have a booking for Monday, Jun 10 at 08:00-13:00. "
                                            "Would you like to replace it?"])
        self.assertEqual(api.calls, [])

    def test_replace_accepted(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")})
        calendar = self.make_calendar(api)
        self.assertEqual(self.click(calendar, Dialogs(password="test1"), day=date(2024, 6, 11)), OUTCOME_BOOKED)
        self.assertTrue(api.calls[0][-1])
        self.assertEqual(list(calendar.bookings), ["2024-06-11-08:00"])

    def test_rebooking_own_slot_needs_no_confirmation(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")})
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test1")
        self.assertEqual(self.click(calendar, dialogs), OUTCOME_BOOKED)
        self.assertEqual(dialogs.confirms, [])

    def test_slot_taken_by_other_user(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")})
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test2")
        self.assertEqual(self.click(calendar, dialogs), OUTCOME_REJECTED)
        self.assertEqual(dialogs.alerts, ['This slot is already taken'])
        self.assertEqual(api.calls, [])

    def test_integer_user_ids_in_bookings(self):
        # Documents written by older clients store userId as a number
        api = FakeApi(bookings={"2024-06-10-08:00": booking(1)})
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test1", confirm_answer=False)
        self.assertEqual(self.click(calendar, dialogs, slot=AFTERNOON), OUTCOME_CANCELLED)
        self.assertEqual(len(dialogs.confirms), 1)

    def test_replace_prompt_falls_back_to_slot_key(self):
        odd_bookings = [
            {"userId": "1", "date": booking_date_iso(MONDAY), "slot": "08:00"},
            {"userId": "1", "date": "not a date", "slot": MORNING.to_dict()},
            {"userId": "1", "date": None, "slot": {"start": "08:00"}},
        ]
        for stored in odd_bookings:
            api = FakeApi(bookings={"2024-06-10-08:00": stored})
            calendar = self.make_calendar(api)
            dialogs = Dialogs(password="test1", confirm_answer=False)
            self.assertEqual(self.click(calendar, dialogs, slot=AFTERNOON), OUTCOME_CANCELLED)
            self.assertEqual(dialogs.confirms, ["You already have a booking for 2024-06-10-08:00. "
                                                "Would you like to replace it?"])

    def test_create_user_failure(self):
        api = FakeApi(fail=("create_user",))
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="fresh")
        self.assertEqual(self.click(calendar, dialogs), OUTCOME_FAILED)
        self.assertEqual(dialogs.alerts, ['Failed to create user'])
        self.assertEqual([call[0] for call in api.calls], ["create_user"])

    def test_book_failure(self):
        api = FakeApi(fail=("book_slot",))
        calendar = self.make_calendar(api)
        dialogs = Dialogs(password="test1")
        self.assertEqual(self.click(calendar, dialogs), OUTCOME_FAILED)
        self.assertEqual(dialogs.alerts, ['Failed to book slot'])
        self.assertEqual(calendar.bookings, {})

    def test_reset_and_logout(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")})
        calendar = self.make_calendar(api)
        self.click(calendar, Dialogs(password="test1"))
        self.assertEqual(calendar.current_user, "1")
        self.assertTrue(calendar.handle_reset())
        self.assertEqual(calendar.bookings, {})
        self.assertEqual(calendar.users, {"1": "test1", "2": "test2"})
        calendar.handle_logout()
        self.assertIsNone(calendar.current_user)

    def test_reset_failure(self):
        api = FakeApi(bookings={"2024-06-10-08:00": booking("1")}, fail=("reset",))
        calendar = self.make_calendar(api)
        self.assertFalse(calendar.handle_reset())
        self.assertIn("2024-06-10-08:00", calendar.bookings)


if __name__ == '__main__':
    unittest.main()
