"""
Tests for request lifecycle and calendar enums.
"""

from datetime import date

import pytest

from app.fsm.states import Element, ReadingKind, RequestStatus, SunSign


class TestRequestStatus:
    """Tests for RequestStatus enum."""

    def test_all_states_defined(self):
        assert {s.value for s in RequestStatus} == {"queued", "processing", "completed", "failed"}

    def test_terminal_states(self):
        assert RequestStatus.COMPLETED.is_terminal
        assert RequestStatus.FAILED.is_terminal
        assert not RequestStatus.QUEUED.is_terminal
        assert not RequestStatus.PROCESSING.is_terminal

    def test_only_failed_frees_the_owner(self):
        blocking = [s for s in RequestStatus if s.blocks_new_request]
        assert RequestStatus.FAILED not in blocking
        assert len(blocking) == 3

    def test_transitions(self):
        assert RequestStatus.QUEUED.next_states == (RequestStatus.PROCESSING,)
        assert set(RequestStatus.PROCESSING.next_states) == {
            RequestStatus.COMPLETED,
            RequestStatus.FAILED,
        }
        assert RequestStatus.COMPLETED.next_states == ()
        assert RequestStatus.FAILED.next_states == ()


class TestReadingKind:
    """Tests for ReadingKind period keys."""

    @pytest.mark.parametrize("value,expected", [
        (None, ReadingKind.DAILY),
        ("today", ReadingKind.DAILY),
        ("Daily", ReadingKind.DAILY),
        ("tomorrow", ReadingKind.TOMORROW),
        ("month", ReadingKind.MONTHLY),
        ("monthly", ReadingKind.MONTHLY),
    ])
    def test_from_query(self, value, expected):
        assert ReadingKind.from_query(value) == expected

    def test_from_query_rejects_unknown(self):
        with pytest.raises(ValueError):
            ReadingKind.from_query("weekly")

    def test_period_keys(self):
        today = date(2026, 3, 31)
        assert ReadingKind.DAILY.period_key(today) == "2026-03-31"
        assert ReadingKind.TOMORROW.period_key(today) == "2026-04-01"
        assert ReadingKind.MONTHLY.period_key(today) == "2026-03"

    def test_tomorrow_key_matches_next_daily_key(self):
        today = date(2026, 12, 31)
        assert ReadingKind.TOMORROW.period_key(today) == ReadingKind.DAILY.period_key(date(2027, 1, 1))


class TestSunSign:
    """Tests for SunSign derivation."""

    def test_all_signs_defined(self):
        assert len(list(SunSign)) == 12

    def test_may_birthday_is_taurus(self):
        sign = SunSign.for_date(date(1990, 5, 15))
        assert sign == SunSign.TAURUS
        assert sign.element == Element.EARTH

    @pytest.mark.parametrize("day", [date(1991, 12, 22), date(1991, 12, 31), date(1992, 1, 1), date(1992, 1, 19)])
    def test_capricorn_wraps_new_year(self, day):
        assert SunSign.for_date(day) == SunSign.CAPRICORN

    def test_boundaries(self):
        assert SunSign.for_date(date(2000, 3, 20)) == SunSign.PISCES
        assert SunSign.for_date(date(2000, 3, 21)) == SunSign.ARIES
        assert SunSign.for_date(date(2000, 1, 20)) == SunSign.AQUARIUS

    def test_every_day_has_a_sign(self):
        day = date(2024, 1, 1)
        while day.year == 2024:
            SunSign.for_date(day)
            day = date.fromordinal(day.toordinal() + 1)
