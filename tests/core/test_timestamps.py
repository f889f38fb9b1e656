"""Tests for timestamp normalization."""

from datetime import UTC, datetime, timedelta, timezone

from eventscale.core.timestamps import ensure_utc, from_iso8601, to_iso8601


class TestIso8601:
    def test_normalizes_to_utc(self):
        local = datetime(2026, 5, 1, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso8601(local) == "2026-05-01T08:00:00.000000+00:00"

    def test_naive_is_treated_as_utc(self):
        assert ensure_utc(datetime(2026, 5, 1, 8, 0)).tzinfo == UTC

    def test_z_suffix(self):
        assert from_iso8601("2026-05-01T08:00:00Z") == datetime(2026, 5, 1, 8, 0, tzinfo=UTC)

    def test_empty_values(self):
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None
        assert from_iso8601("") is None

    def test_strings_sort_chronologically(self):
        # 2026-05-01 23:00 UTC, written with a +02:00 offset
        earlier = datetime(2026, 5, 2, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        later = datetime(2026, 5, 1, 23, 30, tzinfo=UTC)
        assert earlier.isoformat() > later.isoformat()
        assert to_iso8601(earlier) < to_iso8601(later)
