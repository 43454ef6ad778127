import logging
import os
import requests
from .error_utils import ApiError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_TIMEOUT = 10


class BookingService:
    """
    Client for the booking HTTP API.

    Exposes the same operations as DatabasePersistence (load_state, create_user, book_slot, reset), each returning the
    full booking document the server answered with, so the calendar can run against either one.
    """

    def __init__(self, base_url: str = None, timeout: float = None, session: requests.Session = None):
        self.base_url = (base_url or os.getenv('BOOKING_API_URL') or DEFAULT_API_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else float(os.getenv('BOOKING_API_TIMEOUT', DEFAULT_TIMEOUT))
        self.session = session or requests.Session()

    def load_state(self):
        return self._request('GET', '/bookings')

    def create_user(self, user_id, password):
        return self._request('POST', '/users', {"userId": str(user_id), "password": password})

    def book_slot(self, user_id, date, slot, slot_key, replace=False):
        payload = {"userId": str(user_id), "date": date, "slot": slot, "slotKey": slot_key}
        if replace:
            payload["replace"] = True
        return self._request('POST', '/bookings', payload)

    def reset(self):
        return self._request('POST', '/reset')

    def _request(self, method: str, path: str, payload: dict = None):
        """
        Send one request and return the decoded JSON body.

        Raises:
          ApiError if the server can't be reached, answers with a non-2xx status or the body isn't JSON.
        """
        url = f"{self.base_url}{path}"
        logger.info("%s %s", method, url)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
            raise ApiError(f"Could not reach booking API: {e}") from e

        logger.info("HTTP Response code: %s", response.status_code)
        if response.status_code >= 300:
            raise ApiError(self._error_message(response), response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError("Booking API returned invalid JSON", response.status_code) from e

    @staticmethod
    def _error_message(response) -> str:
        # Server errors come back as {"error": "..."}
        try:
            return response.json().get('error') or response.reason
        except (ValueError, AttributeError):
            return response.reason or f"HTTP {response.status_code}"
