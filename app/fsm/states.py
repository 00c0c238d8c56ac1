"""
State Definitions.
Generation request lifecycle, reading kinds and zodiac enums.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
    """
    Lifecycle of a generation request.

    queued -> processing -> completed | failed. Terminal states never
    move again; a failed request is replaced by a fresh one.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED)

    @property
    def blocks_new_request(self) -> bool:
        """Any non-failed request is the owner's active request."""
        return self != RequestStatus.FAILED

    @property
    def next_states(self) -> tuple:
        transitions = {
            RequestStatus.QUEUED: (RequestStatus.PROCESSING,),
            RequestStatus.PROCESSING: (RequestStatus.COMPLETED, RequestStatus.FAILED),
        }
        return transitions.get(self, ())


class ReadingKind(str, Enum):
    """Date-scoped reading kinds stored in the reading cache."""

    DAILY = "daily"
    TOMORROW = "tomorrow"
    MONTHLY = "monthly"

    @classmethod
    def from_query(cls, value: Optional[str]) -> "ReadingKind":
        """Map the public `type` query values (today, tomorrow, month...)."""
        aliases = {
            None: cls.DAILY,
            "": cls.DAILY,
            "today": cls.DAILY,
            "daily": cls.DAILY,
            "tomorrow": cls.TOMORROW,
            "month": cls.MONTHLY,
            "monthly": cls.MONTHLY,
        }
        normalized = value.strip().lower() if value else value
        if normalized not in aliases:
            raise ValueError(f"Unknown reading type: {value}")
        return aliases[normalized]

    def target_date(self, today: date) -> date:
        """The calendar day the reading is about."""
        if self == ReadingKind.TOMORROW:
            return today + timedelta(days=1)
        return today

    def period_key(self, today: date) -> str:
        """
        Cache key for the period this reading covers.

        Daily and tomorrow use ISO dates, monthly uses YYYY-MM.
        """
        target = self.target_date(today)
        if self == ReadingKind.MONTHLY:
            return f"{target.year:04d}-{target.month:02d}"
        return target.isoformat()


class Element(str, Enum):
    """Classical elements."""

    FIRE = "Fire"
    EARTH = "Earth"
    AIR = "Air"
    WATER = "Water"


class SunSign(str, Enum):
    """
    12 tropical sun signs.
    Used to personalize portraits and readings.
    """

    CAPRICORN = "Capricorn"
    AQUARIUS = "Aquarius"
    PISCES = "Pisces"
    ARIES = "Aries"
    TAURUS = "Taurus"
    GEMINI = "Gemini"
    CANCER = "Cancer"
    LEO = "Leo"
    VIRGO = "Virgo"
    LIBRA = "Libra"
    SCORPIO = "Scorpio"
    SAGITTARIUS = "Sagittarius"

    @property
    def element(self) -> Element:
        """Element ruling the sign."""
        elements = {
            self.ARIES: Element.FIRE,
            self.LEO: Element.FIRE,
            self.SAGITTARIUS: Element.FIRE,
            self.TAURUS: Element.EARTH,
            self.VIRGO: Element.EARTH,
            self.CAPRICORN: Element.EARTH,
            self.GEMINI: Element.AIR,
            self.LIBRA: Element.AIR,
            self.AQUARIUS: Element.AIR,
            self.CANCER: Element.WATER,
            self.SCORPIO: Element.WATER,
            self.PISCES: Element.WATER,
        }
        return elements[self]

    @property
    def date_range(self) -> tuple:
        """Inclusive ((start_month, start_day), (end_month, end_day))."""
        ranges = {
            self.CAPRICORN: ((12, 22), (1, 19)),
            self.AQUARIUS: ((1, 20), (2, 18)),
            self.PISCES: ((2, 19), (3, 20)),
            self.ARIES: ((3, 21), (4, 19)),
            self.TAURUS: ((4, 20), (5, 20)),
            self.GEMINI: ((5, 21), (6, 20)),
            self.CANCER: ((6, 21), (7, 22)),
            self.LEO: ((7, 23), (8, 22)),
            self.VIRGO: ((8, 23), (9, 22)),
            self.LIBRA: ((9, 23), (10, 22)),
            self.SCORPIO: ((10, 23), (11, 21)),
            self.SAGITTARIUS: ((11, 22), (12, 21)),
        }
        return ranges[self]

    def contains(self, month: int, day: int) -> bool:
        start, end = self.date_range
        point = (month, day)
        # Capricorn wraps the new year
        if start > end:
            return point >= start or point <= end
        return start <= point <= end

    @classmethod
    def for_date(cls, value: date) -> "SunSign":
        for sign in cls:
            if sign.contains(value.month, value.day):
                return sign
        raise ValueError(f"No sun sign for {value}")
