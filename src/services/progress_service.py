"""Progress accounting: streaks, happiness and tasks-chomped counters.

Completing a task ratchets counters up. Reverting a completion never lowers
them, so an accidental undo cannot cost a user their streak.
"""

import logging
from datetime import date, datetime
from typing import Any

from src.core import db_client
from src.core.clock import Clock, system_clock
from src.core.config import constants, settings
from src.core.logging import span
from src.core.recurrence import day_delta, local_date
from src.domain.progress import ProgressStats


logger = logging.getLogger(__name__)


def _default_stats(user_id: str) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "tasks_chomped": 0,
        "current_streak": 0,
        "longest_streak": 0,
        "last_active_date": None,
        "happiness_level": constants.DEFAULT_HAPPINESS,
    }


async def get_stats(*, user_id: str) -> ProgressStats:
    """Get a user's stats, creating the default row if none exists yet."""
    with span("progress_service.get_stats"):
        record = await db_client.get_first_record(
            collection="progress_stats",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        )
        if record is None:
            record = await db_client.create_record(collection="progress_stats", data=_default_stats(user_id))
            logger.info("Created default progress stats", extra={"user_id": user_id})
        return ProgressStats.model_validate(record)


async def _write_stats(stats: ProgressStats, fields: dict[str, Any]) -> ProgressStats:
    record = await db_client.update_record(collection="progress_stats", record_id=stats.id, data=fields)
    return ProgressStats.model_validate(record)


async def upsert_stats(*, user_id: str, fields: dict[str, Any]) -> ProgressStats:
    """Write counter fields for a user, creating the row when missing."""
    with span("progress_service.upsert_stats"):
        stats = await get_stats(user_id=user_id)
        return await _write_stats(stats, fields)


async def _user_timezone(user_id: str) -> str:
    try:
        user = await db_client.get_record(collection="users", record_id=user_id)
    except db_client.RecordNotFoundError:
        return settings.app_timezone
    return user.get("timezone") or settings.app_timezone


def advance_streak(stats: ProgressStats, today: date) -> ProgressStats:
    """Apply one completion on ``today`` to the counters (pure).

    Same day keeps the streak, the next day extends it, any longer gap or no
    prior activity restarts it at 1.
    """
    if stats.last_active_date is None:
        current = 1
    else:
        delta = day_delta(stats.last_active_date, today)
        if delta == 0:
            current = max(stats.current_streak, 1)
        elif delta == 1:
            current = stats.current_streak + 1
        elif delta < 0:
            # Zone change moved "today" behind the last active day
            current = max(stats.current_streak, 1)
            today = stats.last_active_date
        else:
            current = 1

    return stats.model_copy(
        update={
            "current_streak": current,
            "longest_streak": max(stats.longest_streak, current),
            "tasks_chomped": stats.tasks_chomped + 1,
            "happiness_level": min(constants.MAX_HAPPINESS, stats.happiness_level + constants.HAPPINESS_PER_COMPLETION),
            "last_active_date": today,
        }
    )


async def record_completion(
    *,
    user_id: str,
    clock: Clock = system_clock,
    timezone: str | None = None,
) -> ProgressStats:
    """Update a user's counters for one task going from incomplete to complete.

    Args:
        user_id: Owner of the completed task
        clock: Source of "now"
        timezone: Zone that defines the user's calendar day; looked up from
            the user when omitted

    Returns:
        The updated stats
    """
    with span("progress_service.record_completion"):
        timezone = timezone or await _user_timezone(user_id)
        today = local_date(clock.now(), timezone)

        stats = await get_stats(user_id=user_id)
        updated = advance_streak(stats, today)

        result = await _write_stats(
            stats,
            updated.model_dump(
                include={"tasks_chomped", "current_streak", "longest_streak", "last_active_date", "happiness_level"}
            ),
        )

        logger.info(
            "Recorded completion",
            extra={
                "user_id": user_id,
                "tasks_chomped": updated.tasks_chomped,
                "current_streak": updated.current_streak,
                "happiness_level": updated.happiness_level,
            },
        )
        return result


def _streaks_from_days(days: list[date]) -> tuple[int, int]:
    """Return (run ending on the last day, longest run) for sorted distinct days."""
    longest = 0
    run = 0
    previous: date | None = None
    for day in days:
        run = run + 1 if previous is not None and day_delta(previous, day) == 1 else 1
        longest = max(longest, run)
        previous = day
    return run, longest


async def recompute_stats(*, user_id: str, clock: Clock = system_clock) -> ProgressStats:
    """Rebuild counters from completed-task history without lowering any of them.

    Recovery path for stats that drifted from the task table. History only
    holds tasks that are still completed, so every recomputed value is merged
    with the stored one by taking the maximum.
    """
    with span("progress_service.recompute_stats"):
        timezone = await _user_timezone(user_id)
        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=(
                f'user_id = "{db_client.sanitize_param(user_id)}" && completed = "true" && completed_at != null'
            ),
            sort="completed_at",
        )

        completed_days = sorted({local_date(_parse_instant(r["completed_at"]), timezone) for r in records})
        current, longest = _streaks_from_days(completed_days)

        stats = await get_stats(user_id=user_id)
        last_active = completed_days[-1] if completed_days else None
        if stats.last_active_date is not None and (last_active is None or stats.last_active_date > last_active):
            last_active = stats.last_active_date
            current = stats.current_streak

        happiness = min(
            constants.MAX_HAPPINESS,
            constants.DEFAULT_HAPPINESS + constants.HAPPINESS_PER_COMPLETION * len(records),
        )
        fields = {
            "tasks_chomped": max(stats.tasks_chomped, len(records)),
            "current_streak": max(stats.current_streak, current),
            "longest_streak": max(stats.longest_streak, longest, current),
            "last_active_date": last_active,
            "happiness_level": max(stats.happiness_level, happiness),
        }
        result = await _write_stats(stats, fields)

        logger.info(
            "Recomputed progress stats",
            extra={"user_id": user_id, "history_size": len(records), "as_of": clock.now().isoformat()},
        )
        return result


def _parse_instant(value: datetime | str) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)
