# Custom exceptions to be used throughout the project.

class BookingError(Exception):
    """
    Base class for every error the booking calendar raises on purpose.
    Callers that only need to tell the user "something went wrong" catch this.
    """
    # By default Exception class takes a tuple of arguments
    def __init__(self, *args):
        super().__init__(*args)

    @property
    def message(self):
        return self.args[0] if self.args else self.__class__.__name__


class StorageError(BookingError):
    """
    To be raised when the booking document can't be read or written.
    May be raised under the following circumstances:
        1. The document file exists but can't be opened
        2. The document file holds invalid JSON
        3. Writing the new document to disk failed
    A missing file is not an error, the default document is seeded instead.
    """


class DuplicateBookingError(BookingError):
    """
    To be raised when a user who already holds a booking tries to book another slot
    while the single-booking policy is switched on.
    """
    def __init__(self, user_id, slot_key=None):
        super().__init__('User already has a booking', user_id, slot_key)
        self.user_id = user_id
        self.slot_key = slot_key


class ApiError(BookingError):
    """
    To be raised by the HTTP client when a request to the booking API fails, either because
    the server could not be reached or because it answered with a non-2xx status.
    status_code is None for connection level failures.
    """
    def __init__(self, message, status_code=None):
        super().__init__(message, status_code)
        self.status_code = status_code
