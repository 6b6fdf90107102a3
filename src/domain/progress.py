"""Progress and achievement domain models."""

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class AchievementType(StrEnum):
    """Which progress metric an achievement is measured against."""

    TASKS_CHOMPED = "tasks_chomped"
    STREAK = "streak"
    HAPPINESS = "happiness"
    MONSTER_UNLOCK = "monster_unlock"
    MONSTER_UNLOCK_STREAK = "monster_unlock_streak"


class ProgressStats(BaseModel):
    """Per-user progress counters. Only the progress accountant writes them."""

    id: str = Field(..., description="Unique stats row ID")
    user_id: str = Field(..., description="Owner user ID")
    tasks_chomped: int = Field(default=0, ge=0, description="Lifetime completions")
    current_streak: int = Field(default=0, ge=0, description="Consecutive active days ending on last_active_date")
    longest_streak: int = Field(default=0, ge=0, description="Best streak ever reached")
    last_active_date: date | None = Field(default=None, description="Local calendar day of the last completion")
    happiness_level: int = Field(default=50, ge=0, le=100, description="Monster happiness, clamped to 0-100")

    def metric_for(self, achievement_type: AchievementType) -> int:
        """Value an achievement of the given type is compared against."""
        match achievement_type:
            case AchievementType.TASKS_CHOMPED | AchievementType.MONSTER_UNLOCK:
                return self.tasks_chomped
            case AchievementType.STREAK | AchievementType.MONSTER_UNLOCK_STREAK:
                return self.longest_streak
            case AchievementType.HAPPINESS:
                return self.happiness_level


class Achievement(BaseModel):
    """A user's unlock record for one achievement definition."""

    id: str = Field(..., description="Unique achievement row ID")
    user_id: str = Field(..., description="Owner user ID")
    code: str = Field(..., description="Definition key, e.g. 'chomp_10'")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="What it takes to unlock")
    icon: str = Field(default="", description="Icon name for the client")
    type: AchievementType = Field(..., description="Metric the requirement applies to")
    requirement: int = Field(..., description="Threshold the metric must reach")
    unlocked_at: datetime | None = Field(default=None, description="None while locked; never cleared once set")

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None


class AchievementDefinition(BaseModel, frozen=True):
    """Catalog entry used to seed a user's achievements."""

    code: str
    name: str
    description: str
    icon: str
    type: AchievementType
    requirement: int
    monster: str | None = None
