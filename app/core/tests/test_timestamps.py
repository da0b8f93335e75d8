"""
Tests for core.timestamps.
"""

import math
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from core.timestamps import sort_key, to_datetime, to_instant

NEW_YEAR = datetime(2024, 1, 1, tzinfo=timezone.utc)
NEW_YEAR_MS = 1_704_067_200_000


class ExplodingTimestamp:
    @property
    def seconds(self):
        raise RuntimeError("corrupt row")

    nanoseconds = 0


class TestToInstant:
    """Tests for to_instant()."""

    def test_aware_datetime(self):
        assert to_instant(NEW_YEAR) == NEW_YEAR_MS

    def test_naive_datetime_is_treated_as_utc(self):
        """
        Naive datetimes order as if they were UTC.

        Why it matters: Older rows without tzinfo must still sort with new ones.
        """
        assert to_instant(datetime(2024, 1, 1)) == NEW_YEAR_MS

    def test_non_utc_offset_is_normalized(self):
        plus_two = timezone(timedelta(hours=2))
        assert to_instant(datetime(2024, 1, 1, 2, 0, tzinfo=plus_two)) == NEW_YEAR_MS

    def test_seconds_nanoseconds_mapping(self):
        assert to_instant({"seconds": 1, "nanoseconds": 500_000_000}) == 1500

    def test_nanoseconds_are_floored_to_milliseconds(self):
        stamp = SimpleNamespace(seconds=2, nanoseconds=1_999_999)
        assert to_instant(stamp) == 2001

    @pytest.mark.parametrize(
        "value",
        [
            None,
            True,
            "2024-01-01",
            42,
            {"seconds": 1},
            {"seconds": "1", "nanoseconds": 0},
            {"seconds": math.nan, "nanoseconds": 0},
            {"seconds": 1, "nanoseconds": math.inf},
            SimpleNamespace(seconds=1),
            object(),
        ],
    )
    def test_malformed_values_yield_none(self, value):
        assert to_instant(value) is None

    def test_attribute_errors_are_contained(self):
        """
        Foreign timestamp objects that raise on access convert to None.

        Why it matters: One corrupt message must not break sorting a whole chat.
        """
        assert to_instant(ExplodingTimestamp()) is None


class TestToDatetime:
    def test_pair_to_aware_datetime(self):
        result = to_datetime({"seconds": NEW_YEAR_MS // 1000, "nanoseconds": 0})

        assert result == NEW_YEAR
        assert result.tzinfo is not None

    def test_unparseable_yields_none(self):
        assert to_datetime("yesterday") is None


class TestSortKey:
    def test_unset_timestamps_sort_first(self):
        values = [NEW_YEAR, None, {"seconds": 10, "nanoseconds": 0}]

        ordered = sorted(values, key=sort_key)

        assert ordered == [None, {"seconds": 10, "nanoseconds": 0}, NEW_YEAR]
