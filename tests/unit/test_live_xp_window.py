"""Passive live XP for the elapsed window."""

from datetime import datetime, timedelta, timezone

from streamquest.gamification.live_service import live_xp_for_window

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)


class TestLiveXpForWindow:
    def test_first_check_pays_nothing(self):
        assert live_xp_for_window(None, NOW, 50) == 0

    def test_partial_hour_pays_nothing(self):
        assert live_xp_for_window(NOW - timedelta(minutes=59), NOW, 50) == 0

    def test_whole_hours(self):
        assert live_xp_for_window(NOW - timedelta(hours=2, minutes=30), NOW, 50) == 100

    def test_capped_at_max_hours(self):
        assert live_xp_for_window(NOW - timedelta(hours=30), NOW, 50) == 300

    def test_custom_cap(self):
        assert live_xp_for_window(NOW - timedelta(hours=30), NOW, 10, max_hours=2) == 20

    def test_missing_rate_uses_default(self):
        assert live_xp_for_window(NOW - timedelta(hours=1), NOW, None, default_xp_per_hour=40) == 40

    def test_clock_skew_pays_nothing(self):
        assert live_xp_for_window(NOW + timedelta(hours=3), NOW, 50) == 0
