"""Tests for achievement seeding and unlocking."""

import pytest

from src.core.errors import NotFoundError
from src.domain.progress import AchievementType, ProgressStats
from src.services import achievement_service, task_service


USER = "user-1"


def _stats(**overrides) -> ProgressStats:
    data = {"id": "s1", "user_id": USER}
    data.update(overrides)
    return ProgressStats.model_validate(data)


async def _by_code(user_id: str = USER) -> dict:
    return {a.code: a for a in await achievement_service.list_achievements(user_id=user_id)}


@pytest.mark.unit
class TestSeedAchievements:
    async def test_seeds_full_catalog_locked(self, patched_db):
        created = await achievement_service.seed_achievements(user_id=USER)

        achievements = await achievement_service.list_achievements(user_id=USER)
        assert created == len(achievement_service.ACHIEVEMENT_CATALOG)
        assert [a.code for a in achievements] == [d.code for d in achievement_service.ACHIEVEMENT_CATALOG]
        assert not any(a.is_unlocked for a in achievements)

    async def test_reseeding_is_idempotent(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)
        await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(tasks_chomped=1),
            clock=clock,
        )

        assert await achievement_service.seed_achievements(user_id=USER) == 0
        assert len(patched_db.all("achievements")) == len(achievement_service.ACHIEVEMENT_CATALOG)
        assert (await _by_code())["first_chomp"].is_unlocked


@pytest.mark.unit
class TestCheckAndUnlock:
    async def test_unlocks_each_threshold_exactly_once(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)

        first = await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(tasks_chomped=10),
            clock=clock,
        )
        second = await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(tasks_chomped=11),
            clock=clock,
        )

        assert {a.code for a in first} == {"first_chomp", "chomp_10", "unlock_monster_blaze"}
        assert second == []
        assert (await _by_code())["chomp_10"].unlocked_at == clock.now()

    async def test_below_threshold_stays_locked(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)

        unlocked = await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(tasks_chomped=9, longest_streak=2, happiness_level=74),
            clock=clock,
        )

        assert {a.code for a in unlocked} == {"first_chomp"}

    async def test_streak_achievements_use_longest_streak(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)

        unlocked = await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(current_streak=1, longest_streak=7),
            clock=clock,
        )

        assert {a.code for a in unlocked} == {"streak_3", "streak_7", "unlock_monster_royal"}

    async def test_happiness_achievement(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)

        unlocked = await achievement_service.check_and_unlock_achievements(
            user_id=USER,
            stats=_stats(happiness_level=100),
            clock=clock,
        )

        assert {a.code for a in unlocked} == {"happiness_75", "happiness_100"}

    async def test_tenth_completion_reports_unlock(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)
        results = []
        for n in range(10):
            task = await task_service.create_task(user_id=USER, title=f"Task {n}")
            results.append(await task_service.complete_task(task_id=task.id, user_id=USER, clock=clock))

        unlocked = {n: {a.code for a in r.newly_unlocked} for n, r in enumerate(results, start=1) if r.newly_unlocked}
        assert unlocked == {
            1: {"first_chomp"},
            5: {"happiness_75"},
            10: {"chomp_10", "unlock_monster_blaze", "happiness_100"},
        }


@pytest.mark.unit
class TestUnlockAchievement:
    async def test_already_unlocked_returns_none(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)
        target = (await _by_code())["streak_30"]
        first_unlock = clock.now()

        assert await achievement_service.unlock_achievement(achievement_id=target.id, user_id=USER, clock=clock)
        clock.advance(days=1)
        assert await achievement_service.unlock_achievement(achievement_id=target.id, user_id=USER, clock=clock) is None

        # the original unlock time is kept
        assert (await _by_code())["streak_30"].unlocked_at == first_unlock

    async def test_other_users_achievement_is_not_found(self, patched_db, clock):
        await achievement_service.seed_achievements(user_id=USER)
        target = (await _by_code())["first_chomp"]

        with pytest.raises(NotFoundError):
            await achievement_service.unlock_achievement(achievement_id=target.id, user_id="intruder", clock=clock)

    async def test_missing_achievement_is_not_found(self, patched_db, clock):
        with pytest.raises(NotFoundError):
            await achievement_service.unlock_achievement(achievement_id="404", user_id=USER, clock=clock)


@pytest.mark.unit
async def test_unlocked_monsters(patched_db, clock):
    await achievement_service.seed_achievements(user_id=USER)
    assert await achievement_service.unlocked_monsters(user_id=USER) == ["chomper"]

    await achievement_service.check_and_unlock_achievements(
        user_id=USER,
        stats=_stats(tasks_chomped=25, longest_streak=7),
        clock=clock,
    )

    assert await achievement_service.unlocked_monsters(user_id=USER) == ["chomper", "blaze", "sparkle", "royal"]


@pytest.mark.unit
def test_every_monster_achievement_names_its_monster():
    monster_types = {AchievementType.MONSTER_UNLOCK, AchievementType.MONSTER_UNLOCK_STREAK}

    for definition in achievement_service.ACHIEVEMENT_CATALOG:
        assert (definition.monster is not None) == (definition.type in monster_types), definition.code


@pytest.mark.unit
async def test_unlocked_monsters_come_from_the_catalog(patched_db, clock):
    await achievement_service.seed_achievements(user_id=USER)
    await patched_db.create_record(
        collection="achievements",
        data={
            "user_id": USER,
            "code": "legacy_monster_ghost",
            "name": "Ghost",
            "description": "",
            "icon": "",
            "type": "monster_unlock",
            "requirement": 1,
            "unlocked_at": clock.now(),
        },
    )

    await achievement_service.check_and_unlock_achievements(
        user_id=USER,
        stats=_stats(tasks_chomped=100, longest_streak=30, happiness_level=100),
        clock=clock,
    )

    expected = [d.monster for d in achievement_service.ACHIEVEMENT_CATALOG if d.monster]
    assert await achievement_service.unlocked_monsters(user_id=USER) == ["chomper", *expected]
