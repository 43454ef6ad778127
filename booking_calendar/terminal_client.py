#!/usr/bin/env python3
"""Terminal client for the booking calendar API.

Usage:
    booking-calendar-client [API_URL]

Commands:
    book YYYY-MM-DD HH:MM   book the slot starting at HH:MM on that day
    reset                   clear all bookings (users are kept)
    logout                  forget the current user
    refresh                 reload state from the server
    quit                    exit
"""
import getpass
import sys
from datetime import date
from booking_calendar.booking.booking_service import BookingService
from booking_calendar.booking.booking_utils import MAX_USERS, format_day_label
from booking_calendar.booking.calendar import BookingCalendar, DISABLED, OUTCOME_BOOKED
from booking_calendar.booking.period import find_slot

# ANSI color codes
class Colors:
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    GREY = '\033[90m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_colored(text: str, color: str = Colors.RESET, file=None):
    print(f"{color}{text}{Colors.RESET}", file=file)


def render(calendar: BookingCalendar, file=None):
    """Print the three displayed weeks, one line per day: '.' disabled, 'o' available, user id when booked."""
    header = "".join(f"{str(slot):>16}" for slot in calendar.time_slots)
    print_colored(f"{'':<18}{header}", Colors.BOLD, file=file)
    for week in calendar.showing_days:
        for day in week:
            cells = []
            for slot in calendar.time_slots:
                state = calendar.slot_state(day, slot)
                booking = calendar.get_booking_for_slot(day, slot)
                if booking:
                    cells.append(f"{'#' + str(booking['userId']):>16}")
                elif state == DISABLED:
                    cells.append(f"{'.':>16}")
                else:
                    cells.append(f"{'o':>16}")
            color = Colors.GREY if calendar.is_slot_disabled(day) else Colors.GREEN
            print_colored(f"{format_day_label(day):<18}{''.join(cells)}", color, file=file)
        print(file=file)
    print_colored(f"Available user slots: {calendar.available_user_slots} of {MAX_USERS}", Colors.YELLOW, file=file)
    if calendar.current_user:
        print(f"Signed in as user {calendar.current_user}", file=file)


def prompt_password(message: str):
    try:
        return getpass.getpass(f"{message} ")
    except (EOFError, KeyboardInterrupt):
        return None


def confirm(message: str) -> bool:
    try:
        answer = input(f"{message} [y/N] ")
    except (EOFError, KeyboardInterrupt):
        return False
    return answer.strip().lower() in ('y', 'yes')


def alert(message: str):
    print_colored(message, Colors.RED)


def handle_command(calendar: BookingCalendar, line: str) -> bool:
    """Run one command. Returns False when the client should exit."""
    parts = line.split()
    if not parts:
        return True
    command = parts[0].lower()

    if command in ('quit', 'exit'):
        return False
    if command == 'refresh':
        if not calendar.load_state():
            alert('Failed to load state')
    elif command == 'logout':
        calendar.handle_logout()
    elif command == 'reset':
        if not calendar.handle_reset():
            alert('Failed to reset bookings')
    elif command == 'book' and len(parts) == 3:
        try:
            day = date.fromisoformat(parts[1])
        except ValueError:
            alert(f"Invalid date: {parts[1]}")
            return True
        slot = find_slot(parts[2])
        if slot is None:
            alert(f"No slot starts at {parts[2]}")
            return True
        if calendar.is_slot_disabled(day):
            alert(f"{format_day_label(day)} is outside the booking window")
            return True
        if calendar.handle_slot_click(day, slot, prompt_password, confirm, alert) == OUTCOME_BOOKED:
            print_colored(f"Booked {format_day_label(day)} {slot}", Colors.GREEN)
    else:
        alert("Commands: book YYYY-MM-DD HH:MM | reset | logout | refresh | quit")
        return True
    render(calendar)
    return True


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    service = BookingService(argv[0] if argv else None)
    calendar = BookingCalendar(service)
    if not calendar.load_state():
        alert(f"Failed to load state from {service.base_url}")
    render(calendar)
    while True:
        try:
            line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not handle_command(calendar, line):
            break
    return 0


if __name__ == "__main__":
    sys.exit(main())
