"""Weekly challenge pool, week boundaries and deterministic generation.

Weeks start on Sunday (server calendar). A week is addressed by its key,
the ISO date of that Sunday, e.g. ``2026-10-18``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any

CHALLENGE_STORAGE_VERSION = 1


@dataclass(frozen=True)
class ChallengeTemplate:
    id: str
    type: str
    title: str
    description: str
    target: int
    xp: int
    coins: int
    difficulty: str


CHALLENGE_POOL: tuple[ChallengeTemplate, ...] = (
    # --- Easy ---
    ChallengeTemplate("tasks_5", "tasks", "Getting Started", "Complete 5 tasks this week", 5, 50, 10, "easy"),
    ChallengeTemplate("events_3", "events", "Planner", "Schedule 3 events this week", 3, 40, 8, "easy"),
    ChallengeTemplate("streak_3", "streak", "Warming Up", "Keep a 3-day streak", 3, 60, 12, "easy"),
    # --- Medium ---
    ChallengeTemplate("tasks_20", "tasks", "Productive Week", "Complete 20 tasks this week", 20, 150, 30, "medium"),
    ChallengeTemplate("goals_2", "goals", "Goal Getter", "Complete 2 goals this week", 2, 200, 40, "medium"),
    ChallengeTemplate("streak_5", "streak", "Steady Hand", "Keep a 5-day streak", 5, 180, 35, "medium"),
    ChallengeTemplate("events_10", "events", "Full Calendar", "Schedule 10 events this week", 10, 120, 25, "medium"),
    # --- Hard ---
    ChallengeTemplate("tasks_50", "tasks", "Task Machine", "Complete 50 tasks this week", 50, 400, 80, "hard"),
    ChallengeTemplate("goals_5", "goals", "Overachiever", "Complete 5 goals this week", 5, 500, 100, "hard"),
    ChallengeTemplate("streak_7", "streak", "Perfect Week", "Keep a 7-day streak", 7, 600, 120, "hard"),
)

# (difficulty, slot) in set order
GENERATION_SLOTS: tuple[tuple[str, int], ...] = (
    ("easy", 1),
    ("medium", 1),
    ("medium", 2),
    ("hard", 1),
)


@dataclass(frozen=True)
class WeekRange:
    start: date
    end: date

    @property
    def key(self) -> str:
        return self.start.isoformat()


def week_range(day: date | datetime) -> WeekRange:
    """Sunday-to-Saturday week containing ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return WeekRange(start=start, end=start + timedelta(days=6))


def week_range_from_key(week_key: str) -> WeekRange:
    return week_range(date.fromisoformat(week_key))


def hash_seed(value: str) -> int:
    """Non-negative 32-bit string hash (``h = h * 31 + code`` with int32 wrap)."""
    h = 0
    for char in value:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def pick_challenge(pool: list[ChallengeTemplate], seed: str, used_ids: set[str]) -> ChallengeTemplate:
    candidates = [c for c in pool if c.id not in used_ids]
    if not candidates:
        candidates = pool
    return candidates[hash_seed(seed) % len(candidates)]


# ---------------------------------------------------------------------------
# Stored challenge set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Challenge:
    id: str
    type: str
    title: str
    description: str
    target: int
    xp: int
    coins: int
    difficulty: str
    claimed_at: datetime | None = None

    @classmethod
    def from_template(cls, template: ChallengeTemplate) -> Challenge:
        return cls(
            id=template.id,
            type=template.type,
            title=template.title,
            description=template.description,
            target=template.target,
            xp=template.xp,
            coins=template.coins,
            difficulty=template.difficulty,
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Challenge:
        reward = raw.get("reward") or {}
        claimed = raw.get("claimedAt")
        return cls(
            id=str(raw["id"]),
            type=str(raw.get("type", "")),
            title=str(raw.get("title", "")),
            description=str(raw.get("description", "")),
            target=int(raw.get("target", 0)),
            xp=int(reward.get("xp", raw.get("xp", 0))),
            coins=int(reward.get("coins", raw.get("coins", 0))),
            difficulty=str(raw.get("difficulty", "")),
            claimed_at=datetime.fromisoformat(claimed.replace("Z", "+00:00")) if claimed else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "target": self.target,
            "reward": {"xp": self.xp, "coins": self.coins},
            "difficulty": self.difficulty,
            "claimedAt": self.claimed_at.isoformat() if self.claimed_at else None,
        }


@dataclass(frozen=True)
class ChallengeSet:
    """Versioned, ordered set of a user's challenges for one week."""

    items: tuple[Challenge, ...] = field(default_factory=tuple)

    @classmethod
    def from_storage(cls, raw: Any) -> ChallengeSet:
        """Load a stored document. A bare list is the legacy version 0 layout."""
        if isinstance(raw, dict):
            entries = raw.get("items") or []
        elif isinstance(raw, list):
            entries = raw
        else:
            entries = []
        return cls(tuple(Challenge.from_dict(e) for e in entries if isinstance(e, dict) and e.get("id")))

    def to_storage(self) -> dict[str, Any]:
        return {
            "version": CHALLENGE_STORAGE_VERSION,
            "items": [c.to_dict() for c in self.items],
        }

    def get(self, challenge_id: str) -> Challenge | None:
        for challenge in self.items:
            if challenge.id == challenge_id:
                return challenge
        return None

    def mark_claimed(self, challenge_id: str, claimed_at: datetime) -> ChallengeSet:
        return ChallengeSet(
            tuple(replace(c, claimed_at=claimed_at) if c.id == challenge_id else c for c in self.items)
        )


def generate_challenges(user_id: str, week_key: str) -> ChallengeSet:
    """Deterministically pick 1 easy, 2 medium and 1 hard challenge."""
    used: set[str] = set()
    picked: list[Challenge] = []
    for difficulty, slot in GENERATION_SLOTS:
        pool = [c for c in CHALLENGE_POOL if c.difficulty == difficulty]
        template = pick_challenge(pool, f"{user_id}:{week_key}:{difficulty}:{slot}", used)
        used.add(template.id)
        picked.append(Challenge.from_template(template))
    return ChallengeSet(tuple(picked))
