# Fixed daily time slot class used for the implementation of booking calendar


"""
Defined as a pair of wall-clock strings, e.g. TimeSlot('08:00', '13:00').
"""
class TimeSlot:

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end

    @property
    def start(self):
        return self._start

    @start.setter
    def start(self, start):
        self._start = start

    @property
    def end(self):
        return self._end

    @end.setter
    def end(self, end):
        self._end = end

    @classmethod
    def from_dict(cls, data: dict):
        return cls(data['start'], data['end'])

    def to_dict(self) -> dict:
        # Stored in the booking document as {"start": "08:00", "end": "13:00"}
        return {"start": self.start, "end": self.end}

    def __eq__(self, other):
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return self.start == other.start and self.end == other.end

    def __hash__(self):
        return hash((self.start, self.end))

    def __repr__(self):
        return f"TimeSlot({self.start!r}, {self.end!r})"

    def __str__(self):
        return f"{self.start} - {self.end}"


# The three bookable windows of every day
TIME_SLOTS = (
    TimeSlot('08:00', '13:00'),
    TimeSlot('13:00', '18:00'),
    TimeSlot('18:00', '22:00'),
)


def find_slot(start: str):
    """Look up one of the fixed slots by its start time. Returns None if there is no such slot."""
    return next((slot for slot in TIME_SLOTS if slot.start == start), None)
