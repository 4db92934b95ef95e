"""Achievement and title rule tables.

Both tables are plain data evaluated by one comparator: a rule is met when
the named metric reaches its threshold. Unlocks are never revoked.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AchievementRule:
    id: str
    metric: str
    threshold: int
    xp_reward: int
    rarity: str


@dataclass(frozen=True)
class TitleRule:
    id: str
    metric: str
    threshold: int


@dataclass(frozen=True)
class AchievementStats:
    """Lifetime stats over the trailing window used by achievement rules."""

    total_goals_completed: int = 0
    total_tasks_completed: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_events_created: int = 0
    days_active: int = 0

    def as_metrics(self) -> dict[str, int]:
        return {
            "total_goals_completed": self.total_goals_completed,
            "total_tasks_completed": self.total_tasks_completed,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_events_created": self.total_events_created,
            "days_active": self.days_active,
        }


@dataclass
class EvaluationResult:
    achievements: list[str]
    unlocked: list[str] = field(default_factory=list)
    bonus_xp: int = 0


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule("first_goal", "total_goals_completed", 1, 50, "bronze"),
    AchievementRule("goal_master", "total_goals_completed", 10, 200, "gold"),
    AchievementRule("first_task", "total_tasks_completed", 1, 25, "bronze"),
    AchievementRule("task_warrior", "total_tasks_completed", 50, 150, "silver"),
    AchievementRule("task_legend", "total_tasks_completed", 200, 500, "diamond"),
    AchievementRule("streak_starter", "current_streak", 7, 100, "bronze"),
    AchievementRule("streak_master", "current_streak", 30, 300, "gold"),
    AchievementRule("streak_legend", "current_streak", 100, 1000, "diamond"),
    AchievementRule("scheduler", "total_events_created", 5, 75, "bronze"),
    AchievementRule("early_adopter", "days_active", 7, 100, "silver"),
    AchievementRule("dedicated", "days_active", 30, 250, "gold"),
)

ACHIEVEMENTS_BY_ID: dict[str, AchievementRule] = {rule.id: rule for rule in ACHIEVEMENT_RULES}

# Metrics: level, longest_streak, total_tasks, total_goals, achievement_count
TITLE_RULES: tuple[TitleRule, ...] = (
    TitleRule("novice", "level", 1),
    TitleRule("streamer", "level", 5),
    TitleRule("pro", "level", 10),
    TitleRule("legend", "level", 25),
    TitleRule("god", "level", 50),
    TitleRule("immortal", "level", 100),
    TitleRule("consistent", "longest_streak", 7),
    TitleRule("marathoner", "longest_streak", 30),
    TitleRule("unstoppable", "longest_streak", 100),
    TitleRule("taskmaster", "total_tasks", 100),
    TitleRule("workaholic", "total_tasks", 500),
    TitleRule("productivity_god", "total_tasks", 1000),
    TitleRule("dreamer", "total_goals", 5),
    TitleRule("achiever", "total_goals", 20),
    TitleRule("champion", "total_goals", 50),
    TitleRule("collector", "achievement_count", 5),
    TitleRule("completionist", "achievement_count", 11),
)

DEFAULT_TITLE = "novice"
TITLE_IDS: frozenset[str] = frozenset(rule.id for rule in TITLE_RULES)


def rule_met(metric: str, threshold: int, metrics: Mapping[str, int]) -> bool:
    """Generic comparator shared by achievement and title rules."""
    return metrics.get(metric, 0) >= threshold


def evaluate(known_ids: Iterable[str], stats: AchievementStats) -> EvaluationResult:
    """Unlock every rule whose threshold is met and that is not already known."""
    achievements = list(dict.fromkeys(known_ids))
    known = set(achievements)
    metrics = stats.as_metrics()
    result = EvaluationResult(achievements=achievements)

    for rule in ACHIEVEMENT_RULES:
        if rule.id in known:
            continue
        if rule_met(rule.metric, rule.threshold, metrics):
            result.achievements.append(rule.id)
            result.unlocked.append(rule.id)
            result.bonus_xp += rule.xp_reward
            known.add(rule.id)

    return result


def resolve_titles(existing: Iterable[str], metrics: Mapping[str, int]) -> list[str]:
    """Return the unlocked title list: existing titles plus any newly earned."""
    titles = list(dict.fromkeys([DEFAULT_TITLE, *existing]))
    for rule in TITLE_RULES:
        if rule.id not in titles and rule_met(rule.metric, rule.threshold, metrics):
            titles.append(rule.id)
    return titles
