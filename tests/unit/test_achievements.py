"""Achievement and title rule evaluation."""

from streamquest.gamification.achievements import (
    ACHIEVEMENT_RULES,
    ACHIEVEMENTS_BY_ID,
    DEFAULT_TITLE,
    AchievementStats,
    evaluate,
    resolve_titles,
    rule_met,
)


class TestRuleMet:
    def test_threshold_reached(self):
        assert rule_met("level", 5, {"level": 5}) is True

    def test_below_threshold(self):
        assert rule_met("level", 5, {"level": 4}) is False

    def test_missing_metric_counts_as_zero(self):
        assert rule_met("total_goals", 1, {}) is False


class TestEvaluate:
    """evaluate() only unlocks new achievements and sums their bonus XP."""

    def test_first_task_unlocks_with_bonus(self):
        result = evaluate([], AchievementStats(total_tasks_completed=1))
        assert result.unlocked == ["first_task"]
        assert result.bonus_xp == 25
        assert result.achievements == ["first_task"]

    def test_known_achievement_not_awarded_twice(self):
        result = evaluate(["first_task"], AchievementStats(total_tasks_completed=5))
        assert result.unlocked == []
        assert result.bonus_xp == 0
        assert result.achievements == ["first_task"]

    def test_multiple_unlocks_in_rule_order(self):
        stats = AchievementStats(total_goals_completed=1, total_tasks_completed=1, days_active=7)
        result = evaluate([], stats)
        assert result.unlocked == ["first_goal", "first_task", "early_adopter"]
        assert result.bonus_xp == 50 + 25 + 100

    def test_existing_achievements_are_kept_first(self):
        result = evaluate(["dedicated"], AchievementStats(total_events_created=5))
        assert result.achievements == ["dedicated", "scheduler"]

    def test_unknown_ids_are_preserved(self):
        result = evaluate(["retired_badge"], AchievementStats())
        assert "retired_badge" in result.achievements

    def test_everything_unlocked_at_high_stats(self):
        stats = AchievementStats(
            total_goals_completed=100,
            total_tasks_completed=1000,
            current_streak=365,
            longest_streak=365,
            total_events_created=100,
            days_active=365,
        )
        result = evaluate([], stats)
        assert set(result.unlocked) == set(ACHIEVEMENTS_BY_ID)
        assert result.bonus_xp == sum(rule.xp_reward for rule in ACHIEVEMENT_RULES)


class TestResolveTitles:
    def test_default_title_always_present(self):
        assert resolve_titles([], {"level": 1}) == [DEFAULT_TITLE]

    def test_level_titles_unlock(self):
        titles = resolve_titles(["novice"], {"level": 10})
        assert "streamer" in titles
        assert "pro" in titles
        assert "legend" not in titles

    def test_titles_never_revoked(self):
        titles = resolve_titles(["novice", "pro"], {"level": 1})
        assert "pro" in titles

    def test_completionist_needs_all_achievements(self):
        assert "completionist" not in resolve_titles([], {"achievement_count": 10})
        assert "completionist" in resolve_titles([], {"achievement_count": 11})

    def test_streak_and_goal_titles(self):
        titles = resolve_titles([], {"longest_streak": 30, "total_goals": 5})
        assert {"consistent", "marathoner", "dreamer"} <= set(titles)
