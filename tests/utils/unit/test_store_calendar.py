from datetime import date, datetime, timezone
from unittest.mock import patch

from utils.store_calendar import store_today


class TestStoreToday:

    def test_evening_in_new_york_is_still_previous_day(self):
        assert store_today(datetime(2025, 7, 1, 2, 0, tzinfo=timezone.utc)) == date(2025, 6, 30)

    def test_afternoon_utc_is_same_day(self):
        assert store_today(datetime(2025, 6, 16, 16, 0, tzinfo=timezone.utc)) == date(2025, 6, 16)

    def test_naive_datetime_is_utc(self):
        assert store_today(datetime(2025, 7, 1, 2, 0)) == date(2025, 6, 30)

    def test_follows_configured_timezone(self):
        with patch("config.STORE_TIMEZONE", "Asia/Tokyo"):
            assert store_today(datetime(2025, 6, 30, 20, 0, tzinfo=timezone.utc)) == date(2025, 7, 1)
