from contextlib import contextmanager
import copy
import json
import logging
import os
import tempfile
from .error_utils import StorageError, DuplicateBookingError

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initial state with some test users
SEEDED_DOCUMENT = {
    "users": {
        "1": "test1",
        "2": "test2"
    },
    "bookings": {},
    "nextUserId": 3
}

EMPTY_DOCUMENT = {
    "users": {},
    "bookings": {},
    "nextUserId": 1
}


class DatabasePersistence:
    """
    Stores the whole booking state as one JSON document on disk: {"users", "bookings", "nextUserId"}.

    Every operation reads the full document, changes it and writes the full document back. There is no
    locking, so two requests racing on the same file can lose an update.
    """

    def __init__(self, path, seed_test_users=True, enforce_single_booking=True):
        self.path = path
        self.seed_test_users = seed_test_users
        self.enforce_single_booking = enforce_single_booking

    def _default_document(self):
        return copy.deepcopy(SEEDED_DOCUMENT if self.seed_test_users else EMPTY_DOCUMENT)

    @contextmanager
    def _document(self):
        """
        Internal read-modify-write helper. Yields the loaded document and saves it once the block exits without raising.
        """
        data = self.load_state()
        yield data
        self._save(data)

    def load_state(self):
        """
        Returns the current document. Creates the file with the default document if it does not exist yet.

        Raises StorageError if the file exists but can't be read or parsed.
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as file:
                data = json.load(file)
        except FileNotFoundError:
            data = self._default_document()
            logger.info("No booking document at %s, creating default state.", self.path)
            self._save(data)
            return data
        except (OSError, ValueError) as e:
            logger.error("Loading bookings failed with error: %s", e.args)
            raise StorageError('Failed to load bookings') from e
        if not isinstance(data, dict):
            logger.error("Booking document at %s is not a JSON object.", self.path)
            raise StorageError('Failed to load bookings')
        # Older or hand-edited files may miss a key
        data.setdefault("users", {})
        data.setdefault("bookings", {})
        data.setdefault("nextUserId", len(data["users"]) + 1)
        return data

    def _save(self, data):
        """
        Write the document pretty-printed. Goes through a temp file in the same directory and os.replace so a failed write
        never truncates the existing document.
        """
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.bookings-', suffix='.json')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as file:
                    json.dump(data, file, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("Saving bookings failed with error: %s", e.args)
            raise StorageError('Failed to save bookings') from e
        logger.info("Booking document written to %s", self.path)

    def create_user(self, user_id, password):
        """
        Registers password under user_id and moves nextUserId past it.
        No uniqueness check on either the id or the password.

        Returns the full document.
        """
        user_id = str(user_id)
        with self._document() as data:
            data["users"][user_id] = password
            # Overwritten, not incremented: registering "5" always leaves 6
            data["nextUserId"] = int(user_id) + 1
        logger.info("Created user %s", user_id)
        return data

    def book_slot(self, user_id, date, slot, slot_key, replace=False):
        """
        Stores a booking under slot_key, overwriting whatever booking held that key before.

        With enforce_single_booking, a user who already holds a booking is rejected with DuplicateBookingError
        unless replace is set. With replace, the user's other bookings are removed first.

        Returns the full document.
        """
        user_id = str(user_id)
        with self._document() as data:
            owned = [key for key, booking in data["bookings"].items() if str(booking.get("userId")) == user_id]
            if replace:
                for key in owned:
                    del data["bookings"][key]
            elif owned and self.enforce_single_booking:
                logger.info("Rejected booking of %s for user %s, already holds %s", slot_key, user_id, owned)
                raise DuplicateBookingError(user_id, slot_key)
            data["bookings"][slot_key] = {
                "userId": user_id,
                "date": date,
                "slot": slot
            }
        logger.info("User %s booked %s", user_id, slot_key)
        return data

    def reset(self):
        """
        Clears every booking and keeps the users and the id counter as they are.

        Returns the full document.
        """
        with self._document() as data:
            data["bookings"] = {}
        logger.info("All bookings cleared")
        return data

