"""
Calendar appointment booking logic for the booking calendar

Problem:

Up to ten users, each identified only by a password, may claim one time slot each. Three fixed slots per day,
bookable from today through the next 13 days.

Data Structures:
users: {"1": "password"}, user id -> password
bookings: {"2024-06-10-08:00": {"userId": "1", "date": "...", "slot": {"start": "08:00", "end": "13:00"}}}

Algorithm:
1. Compute the three displayed weeks and the bookable window from today
2. Load the booking document and derive each slot's state (disabled, booked, available)
3. On slot click: password -> existing user or new user -> confirm replacing an existing booking
   -> check the slot isn't someone else's -> write the booking and re-render from the answer
"""
from datetime import date
import logging
from .booking_utils import (MAX_USERS, booking_date_iso, format_day_label, get_booking_window, get_visible_days,
                            group_by_week, is_in_window, parse_booking_date, slot_key)
from .error_utils import BookingError
from .period import TIME_SLOTS, TimeSlot

logger = logging.getLogger(__name__)

# Slot states used for rendering
DISABLED = 'disabled'
BOOKED = 'booked'
AVAILABLE = 'available'

# Outcomes of handle_slot_click
OUTCOME_BOOKED = 'booked'
OUTCOME_CANCELLED = 'cancelled'
OUTCOME_REJECTED = 'rejected'
OUTCOME_FAILED = 'failed'


class BookingCalendar:
    """
    Client side state of the booking calendar.

    api is anything with load_state(), create_user(), book_slot() and reset() returning the full booking
    document: DatabasePersistence when running inside the server, BookingService when talking to it over HTTP.
    """

    time_slots = TIME_SLOTS

    def __init__(self, api, today: date = None):
        self.api = api
        self.users = {}
        self.bookings = {}
        self.next_user_id = 1
        self.current_user = None
        self.booking_period = (None, None)
        self.showing_days = []
        self.update_visible_days(today)

    def update_visible_days(self, today: date = None):
        today = today or date.today()
        logger.debug("Today: %s", today)
        self.booking_period = get_booking_window(today)
        self.showing_days = group_by_week(get_visible_days(today))

    def load_state(self) -> bool:
        try:
            data = self.api.load_state()
        except BookingError as e:
            logger.error("Failed to load state: %s", e.message)
            return False
        self._apply_state(data)
        return True

    def _apply_state(self, data: dict):
        self.users = data.get('users', {})
        self.bookings = data.get('bookings', {})
        self.next_user_id = int(data.get('nextUserId', len(self.users) + 1))

    @property
    def available_user_slots(self) -> int:
        return MAX_USERS - len(self.users)

    def find_user_by_password(self, password):
        return next((user_id for user_id, stored_password in self.users.items() if stored_password == password), None)

    def find_booking_for_user(self, user_id):
        """Returns (slot_key, booking) of the user's booking or None."""
        return next(((key, booking) for key, booking in self.bookings.items()
                     if str(booking.get('userId')) == str(user_id)), None)

    def get_booking_for_slot(self, day: date, slot: TimeSlot):
        return self.bookings.get(slot_key(day, slot))

    def is_slot_disabled(self, day: date) -> bool:
        return not is_in_window(day, self.booking_period)

    def slot_state(self, day: date, slot: TimeSlot) -> str:
        if self.is_slot_disabled(day):
            return DISABLED
        if self.get_booking_for_slot(day, slot):
            return BOOKED
        return AVAILABLE

    def handle_slot_click(self, day: date, slot: TimeSlot, prompt, confirm, alert) -> str:
        """
        Runs the booking flow for one slot.

        prompt(message) returns the entered text or None, confirm(message) returns a bool and alert(message) shows an
        error to the user. No request is sent before the user is known and the slot is known to be free.

        Returns one of the OUTCOME_* constants.
        """
        if self.is_slot_disabled(day):
            return OUTCOME_REJECTED

        # Step 1: Get user credentials
        password = prompt('Enter your password:')
        if not password:
            return OUTCOME_CANCELLED

        # Step 2: Check if user exists and get their ID
        user_id = self.find_user_by_password(password)
        if user_id is None:
            if len(self.users) >= MAX_USERS:
                alert('Maximum number of users reached')
                return OUTCOME_REJECTED
            user_id = str(self.next_user_id)
            try:
                self._apply_state(self.api.create_user(user_id, password))
            except BookingError as e:
                logger.error("Failed to create user %s: %s", user_id, e.message)
                alert('Failed to create user')
                return OUTCOME_FAILED
        self.current_user = user_id

        key = slot_key(day, slot)
        existing = self.find_booking_for_user(user_id)
        if existing and existing[0] != key:
            replace = confirm(f"You already have a booking for {self._describe_booking(*existing)}. "
                              f"Would you like to replace it?")
            if not replace:
                return OUTCOME_CANCELLED

        # Step 3: Check if slot is taken by another user
        taken = self.bookings.get(key)
        if taken and str(taken.get('userId')) != user_id:
            alert('This slot is already taken')
            return OUTCOME_REJECTED

        try:
            data = self.api.book_slot(user_id, booking_date_iso(day), slot.to_dict(), key,
                                      replace=existing is not None)
        except BookingError as e:
            logger.error("Failed to book slot %s for user %s: %s", key, user_id, e.message)
            alert('Failed to book slot')
            return OUTCOME_FAILED
        self._apply_state(data)
        return OUTCOME_BOOKED

    @staticmethod
    def _describe_booking(key: str, booking: dict) -> str:
        # The API stores whatever slot/date shape it was sent
        try:
            booked_slot = TimeSlot.from_dict(booking['slot'])
            return f"{format_day_label(parse_booking_date(booking['date']))} at {booked_slot.start}-{booked_slot.end}"
        except (KeyError, TypeError, ValueError, AttributeError):
            return key

    def handle_reset(self) -> bool:
        try:
            data = self.api.reset()
        except BookingError as e:
            logger.error("Failed to reset bookings: %s", e.message)
            return False
        self._apply_state(data)
        return True

    def handle_logout(self):
        self.current_user = None
