"""Achievement service: catalog seeding and threshold unlocks."""

import logging

from src.core import db_client
from src.core.clock import Clock, system_clock
from src.core.errors import NotFoundError
from src.core.logging import span
from src.domain.progress import Achievement, AchievementDefinition, AchievementType, ProgressStats


logger = logging.getLogger(__name__)

DEFAULT_MONSTER = "chomper"

ACHIEVEMENT_CATALOG: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        code="first_chomp",
        name="First Bite",
        description="Complete your first task",
        icon="cookie",
        type=AchievementType.TASKS_CHOMPED,
        requirement=1,
    ),
    AchievementDefinition(
        code="chomp_10",
        name="Getting Hungry",
        description="Complete 10 tasks",
        icon="utensils",
        type=AchievementType.TASKS_CHOMPED,
        requirement=10,
    ),
    AchievementDefinition(
        code="chomp_25",
        name="Appetite Growing",
        description="Complete 25 tasks",
        icon="chef-hat",
        type=AchievementType.TASKS_CHOMPED,
        requirement=25,
    ),
    AchievementDefinition(
        code="chomp_50",
        name="Hungry Monster",
        description="Complete 50 tasks",
        icon="drumstick",
        type=AchievementType.TASKS_CHOMPED,
        requirement=50,
    ),
    AchievementDefinition(
        code="chomp_100",
        name="Feast Master",
        description="Complete 100 tasks",
        icon="crown",
        type=AchievementType.TASKS_CHOMPED,
        requirement=100,
    ),
    AchievementDefinition(
        code="streak_3",
        name="Hat Trick",
        description="Maintain a 3-day streak",
        icon="flame",
        type=AchievementType.STREAK,
        requirement=3,
    ),
    AchievementDefinition(
        code="streak_7",
        name="Week Warrior",
        description="Maintain a 7-day streak",
        icon="zap",
        type=AchievementType.STREAK,
        requirement=7,
    ),
    AchievementDefinition(
        code="streak_14",
        name="Fortnight Fighter",
        description="Maintain a 14-day streak",
        icon="star",
        type=AchievementType.STREAK,
        requirement=14,
    ),
    AchievementDefinition(
        code="streak_30",
        name="Monthly Master",
        description="Maintain a 30-day streak",
        icon="trophy",
        type=AchievementType.STREAK,
        requirement=30,
    ),
    AchievementDefinition(
        code="happiness_75",
        name="Joyful Journey",
        description="Reach 75% happiness",
        icon="heart",
        type=AchievementType.HAPPINESS,
        requirement=75,
    ),
    AchievementDefinition(
        code="happiness_100",
        name="Pure Bliss",
        description="Reach 100% happiness",
        icon="sparkles",
        type=AchievementType.HAPPINESS,
        requirement=100,
    ),
    AchievementDefinition(
        code="unlock_monster_blaze",
        name="Blaze",
        description="A fiery companion. Complete 10 tasks",
        icon="flame",
        type=AchievementType.MONSTER_UNLOCK,
        requirement=10,
        monster="blaze",
    ),
    AchievementDefinition(
        code="unlock_monster_sparkle",
        name="Sparkle",
        description="A magical friend. Complete 25 tasks",
        icon="sparkles",
        type=AchievementType.MONSTER_UNLOCK,
        requirement=25,
        monster="sparkle",
    ),
    AchievementDefinition(
        code="unlock_monster_cosmic",
        name="Cosmic",
        description="A stellar friend. Complete 50 tasks",
        icon="star",
        type=AchievementType.MONSTER_UNLOCK,
        requirement=50,
        monster="cosmic",
    ),
    AchievementDefinition(
        code="unlock_monster_royal",
        name="Royal",
        description="A noble companion. Maintain a 7-day streak",
        icon="crown",
        type=AchievementType.MONSTER_UNLOCK_STREAK,
        requirement=7,
        monster="royal",
    ),
)

_MONSTER_BY_CODE = {definition.code: definition.monster for definition in ACHIEVEMENT_CATALOG if definition.monster}


def _owner_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


async def seed_achievements(*, user_id: str) -> int:
    """Create any catalog entries the user does not have yet.

    Safe to call repeatedly; existing rows (and their unlock state) are left alone.

    Returns:
        Number of achievement rows created
    """
    with span("achievement_service.seed_achievements"):
        existing = await db_client.list_all_records(collection="achievements", filter_query=_owner_filter(user_id))
        existing_codes = {record["code"] for record in existing}

        created = 0
        for definition in ACHIEVEMENT_CATALOG:
            if definition.code in existing_codes:
                continue
            await db_client.create_record(
                collection="achievements",
                data={
                    "user_id": user_id,
                    "code": definition.code,
                    "name": definition.name,
                    "description": definition.description,
                    "icon": definition.icon,
                    "type": definition.type,
                    "requirement": definition.requirement,
                    "unlocked_at": None,
                },
            )
            created += 1

        if created:
            logger.info("Seeded achievements", extra={"user_id": user_id, "seeded": created})
        return created


async def list_achievements(*, user_id: str) -> list[Achievement]:
    """All achievements for a user, locked and unlocked, in catalog order."""
    with span("achievement_service.list_achievements"):
        records = await db_client.list_all_records(
            collection="achievements",
            filter_query=_owner_filter(user_id),
            sort="id",
        )
        return [Achievement.model_validate(record) for record in records]


async def unlock_achievement(
    *,
    achievement_id: str,
    user_id: str,
    clock: Clock = system_clock,
) -> Achievement | None:
    """Mark one achievement unlocked.

    Returns:
        The unlocked achievement, or None if it was already unlocked

    Raises:
        NotFoundError: If the achievement does not exist or belongs to another user
    """
    with span("achievement_service.unlock_achievement"):
        try:
            record = await db_client.get_record(collection="achievements", record_id=achievement_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("Achievement", achievement_id) from e
        if record["user_id"] != user_id:
            raise NotFoundError("Achievement", achievement_id)

        if record.get("unlocked_at"):
            return None

        updated = await db_client.update_record(
            collection="achievements",
            record_id=achievement_id,
            data={"unlocked_at": clock.now()},
        )
        achievement = Achievement.model_validate(updated)
        logger.info(
            "Achievement unlocked",
            extra={"user_id": user_id, "code": achievement.code, "achievement_id": achievement_id},
        )
        return achievement


async def check_and_unlock_achievements(
    *,
    user_id: str,
    stats: ProgressStats,
    clock: Clock = system_clock,
) -> list[Achievement]:
    """Unlock every locked achievement whose threshold the stats now meet.

    Args:
        user_id: Owner of the stats
        stats: Counters after the latest completion
        clock: Source of the unlock timestamp

    Returns:
        Only the achievements unlocked by this call
    """
    with span("achievement_service.check_and_unlock_achievements"):
        locked = await db_client.list_all_records(
            collection="achievements",
            filter_query=f"{_owner_filter(user_id)} && unlocked_at = null",
            sort="id",
        )

        newly_unlocked: list[Achievement] = []
        for record in locked:
            achievement = Achievement.model_validate(record)
            if stats.metric_for(achievement.type) < achievement.requirement:
                continue
            unlocked = await unlock_achievement(achievement_id=achievement.id, user_id=user_id, clock=clock)
            if unlocked is not None:
                newly_unlocked.append(unlocked)

        return newly_unlocked


async def unlocked_monsters(*, user_id: str) -> list[str]:
    """Monster companions the user may pick; the default one is always available."""
    with span("achievement_service.unlocked_monsters"):
        monsters = [DEFAULT_MONSTER]
        for achievement in await list_achievements(user_id=user_id):
            monster = _MONSTER_BY_CODE.get(achievement.code)
            if monster and achievement.is_unlocked:
                monsters.append(monster)
        return monsters
