"""Task service: CRUD and the completion lifecycle."""

import logging
from datetime import datetime
from typing import Any

from src.core import db_client
from src.core.clock import Clock, system_clock
from src.core.config import constants, settings
from src.core.errors import NotFoundError, ValidationError
from src.core.logging import log_with_user_context, span
from src.core.recurrence import end_of_day, local_date, start_of_day
from src.domain.task import Task, TaskCategory, TaskPriority
from src.models.service_models import CompletionResult
from src.services import achievement_service, progress_service


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "notes", "category", "priority", "due_date"})


def _owner_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


def _visible_filter(now: datetime) -> str:
    return f'(scheduled_for = null || scheduled_for <= "{db_client.to_db_timestamp(now)}")'


def _validate_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Coerce enum fields and reject unknown values."""
    cleaned = dict(fields)
    try:
        if "category" in cleaned:
            cleaned["category"] = TaskCategory(cleaned["category"])
        if "priority" in cleaned:
            cleaned["priority"] = TaskPriority(cleaned["priority"])
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if "title" in cleaned and not str(cleaned["title"]).strip():
        msg = "Task title cannot be empty"
        raise ValidationError(msg)
    return cleaned


async def insert_task(*, data: dict[str, Any]) -> Task:
    """Insert a task row as given and return it."""
    record = await db_client.create_record(collection="tasks", data=data)
    return Task.model_validate(record)


async def get_task(*, task_id: str, user_id: str) -> Task:
    """Get a task owned by the user.

    Raises:
        NotFoundError: If the task does not exist or belongs to another user
    """
    with span("task_service.get_task"):
        try:
            record = await db_client.get_record(collection="tasks", record_id=task_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("Task", task_id) from e

        if record["user_id"] != user_id:
            raise NotFoundError("Task", task_id)
        return Task.model_validate(record)


async def create_task(
    *,
    user_id: str,
    title: str,
    notes: str | None = None,
    category: str = constants.DEFAULT_CATEGORY,
    priority: str = constants.DEFAULT_PRIORITY,
    due_date: datetime | None = None,
    scheduled_for: datetime | None = None,
) -> Task:
    """Create a one-off task.

    Raises:
        ValidationError: If the title is empty or category/priority is unknown
    """
    with span("task_service.create_task"):
        data = _validate_fields({"title": title, "category": category, "priority": priority})
        task = await insert_task(
            data={
                "user_id": user_id,
                **data,
                "notes": notes,
                "completed": False,
                "completed_at": None,
                "due_date": due_date,
                "is_recurring": False,
                "recurring_pattern": None,
                "template_id": None,
                "scheduled_for": scheduled_for,
            }
        )
        logger.info("Created task", extra={"user_id": user_id, "task_id": task.id})
        return task


async def list_tasks(*, user_id: str, clock: Clock = system_clock) -> list[Task]:
    """Tasks visible to the user right now, newest first."""
    with span("task_service.list_tasks"):
        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=f"{_owner_filter(user_id)} && {_visible_filter(clock.now())}",
            sort="-created",
        )
        return [Task.model_validate(record) for record in records]


async def complete_task(
    *,
    task_id: str,
    user_id: str,
    clock: Clock = system_clock,
) -> CompletionResult:
    """Mark a task complete and account for it in the user's progress.

    The task write, the stats write and any achievement unlocks commit
    together; if any of them fails none of them is kept and the error
    propagates. Completing an already completed task changes nothing.

    Args:
        task_id: Task to complete
        user_id: Caller; must own the task
        clock: Source of "now"

    Returns:
        The task, the updated stats and the achievements unlocked by this completion

    Raises:
        NotFoundError: If the task does not exist or belongs to another user
    """
    with span("task_service.complete_task"):
        task = await get_task(task_id=task_id, user_id=user_id)
        if task.completed:
            stats = await progress_service.get_stats(user_id=user_id)
            return CompletionResult(task=task, stats=stats, newly_unlocked=[])

        async with db_client.transaction():
            record = await db_client.update_record(
                collection="tasks",
                record_id=task_id,
                data={"completed": True, "completed_at": clock.now()},
            )
            stats = await progress_service.record_completion(user_id=user_id, clock=clock)
            unlocked = await achievement_service.check_and_unlock_achievements(
                user_id=user_id,
                stats=stats,
                clock=clock,
            )

        log_with_user_context(
            logger,
            "info",
            "Task completed",
            user_id=user_id,
            task_id=task_id,
            template_id=task.template_id,
            unlocked=[a.code for a in unlocked],
        )
        return CompletionResult(task=Task.model_validate(record), stats=stats, newly_unlocked=unlocked)


async def _open_sibling(task: Task) -> dict[str, Any] | None:
    """Another incomplete task generated by the same template, if any."""
    return await db_client.get_first_record(
        collection="tasks",
        filter_query=(
            f'template_id = "{db_client.sanitize_param(task.template_id)}" && '
            f"{_owner_filter(task.user_id)} && "
            f'completed = "false" && id != "{db_client.sanitize_param(task.id)}"'
        ),
    )


async def uncomplete_task(*, task_id: str, user_id: str) -> Task:
    """Revert a completion. Progress stats are left as they are.

    A recurring instance cannot be reopened once its template has already
    produced the next one; the newer instance has to be completed or deleted
    first.

    Raises:
        NotFoundError: If the task does not exist or belongs to another user
        ValidationError: If the template already has another incomplete task
    """
    with span("task_service.uncomplete_task"):
        async with db_client.transaction():
            task = await get_task(task_id=task_id, user_id=user_id)
            if not task.completed:
                return task

            if task.template_id is not None:
                sibling = await _open_sibling(task)
                if sibling is not None:
                    msg = f"Recurring task already has an open instance: {sibling['id']}"
                    raise ValidationError(msg)

            record = await db_client.update_record(
                collection="tasks",
                record_id=task_id,
                data={"completed": False, "completed_at": None},
            )

        logger.info("Task reverted to incomplete", extra={"user_id": user_id, "task_id": task_id})
        return Task.model_validate(record)


async def update_task(
    *,
    task_id: str,
    fields: dict[str, Any],
    user_id: str,
    clock: Clock = system_clock,
) -> Task:
    """Edit task fields. A ``completed`` key is routed through complete/uncomplete.

    Field edits and the completion change commit together.

    Raises:
        NotFoundError: If the task does not exist or belongs to another user
        ValidationError: If a field is not editable or has an invalid value
    """
    with span("task_service.update_task"):
        fields = dict(fields)
        completed = fields.pop("completed", None)

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be edited: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)

        async with db_client.transaction():
            task = await get_task(task_id=task_id, user_id=user_id)
            if fields:
                record = await db_client.update_record(
                    collection="tasks",
                    record_id=task_id,
                    data=_validate_fields(fields),
                )
                task = Task.model_validate(record)

            if completed is True:
                task = (await complete_task(task_id=task_id, user_id=user_id, clock=clock)).task
            elif completed is False:
                task = await uncomplete_task(task_id=task_id, user_id=user_id)

        return task


async def delete_task(*, task_id: str, user_id: str) -> None:
    """Delete a task.

    Raises:
        NotFoundError: If the task does not exist or belongs to another user
    """
    with span("task_service.delete_task"):
        await get_task(task_id=task_id, user_id=user_id)
        await db_client.delete_record(collection="tasks", record_id=task_id)
        logger.info("Deleted task", extra={"user_id": user_id, "task_id": task_id})


async def clear_completed(*, user_id: str) -> int:
    """Delete the user's completed one-off tasks. Template tasks are kept.

    Returns:
        Number of tasks deleted
    """
    with span("task_service.clear_completed"):
        count = await db_client.delete_records(
            collection="tasks",
            filter_query=f'{_owner_filter(user_id)} && completed = "true" && template_id = null',
        )
        logger.info("Cleared completed tasks", extra={"user_id": user_id, "count": count})
        return count


async def get_tasks_due_today(
    *,
    user_id: str,
    timezone: str | None = None,
    clock: Clock = system_clock,
) -> list[Task]:
    """Incomplete, visible tasks due within the user's current local day.

    Args:
        user_id: Task owner
        timezone: IANA zone defining "today"; the app timezone when omitted
        clock: Source of "now"
    """
    with span("task_service.get_tasks_due_today"):
        timezone = timezone or settings.app_timezone
        now = clock.now()
        today = local_date(now, timezone)
        day_start = db_client.to_db_timestamp(start_of_day(today, timezone))
        day_end = db_client.to_db_timestamp(end_of_day(today, timezone))

        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=(
                f'{_owner_filter(user_id)} && completed = "false" && '
                f'due_date >= "{day_start}" && due_date <= "{day_end}" && {_visible_filter(now)}'
            ),
            sort="due_date",
        )
        return [Task.model_validate(record) for record in records]
