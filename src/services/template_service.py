"""Recurring template service: template CRUD and task materialization.

A template never has more than one incomplete task at a time. The next
instance is only materialized once the current one has been completed (or
deleted), and at most once per app-zone calendar day.
"""

import logging
from datetime import date, datetime
from typing import Any

from src.core import db_client
from src.core.clock import Clock, system_clock
from src.core.config import constants, settings
from src.core.errors import NotFoundError, ValidationError
from src.core.logging import log_with_context, span
from src.core.recurrence import end_of_day, is_due_on, local_date, next_occurrence, rule_from_fields, start_of_day
from src.domain.task import Task, TaskCategory, TaskPriority
from src.domain.template import RecurringTemplate, rule_to_fields
from src.models.service_models import RegenerationSummary
from src.services import task_service


logger = logging.getLogger(__name__)

PROPAGATED_FIELDS = ("title", "category", "notes", "priority")
EDITABLE_FIELDS = frozenset({*PROPAGATED_FIELDS, "recurring_pattern", "day_of_week", "day_of_month", "active"})


async def get_active_task_for_template(*, template_id: str, user_id: str) -> Task | None:
    """The template's incomplete task, if one exists."""
    record = await db_client.get_first_record(
        collection="tasks",
        filter_query=(
            f'template_id = "{db_client.sanitize_param(template_id)}" && '
            f'user_id = "{db_client.sanitize_param(user_id)}" && completed = "false"'
        ),
    )
    return Task.model_validate(record) if record else None


async def list_active_templates() -> list[RecurringTemplate]:
    """Every active template across all users."""
    records = await db_client.list_all_records(
        collection="recurring_templates",
        filter_query='active = "true"',
        sort="id",
    )
    return [RecurringTemplate.model_validate(record) for record in records]


def _generated_on(template: RecurringTemplate, day: date) -> bool:
    if template.last_generated_at is None:
        return False
    return local_date(template.last_generated_at, settings.app_timezone) == day


async def materialize(
    *,
    template: RecurringTemplate,
    target_date: date,
    clock: Clock = system_clock,
    scheduled_for: datetime | None = None,
) -> Task | None:
    """Create the task instance for ``target_date`` unless the template already has one.

    Args:
        template: Template to materialize
        target_date: App-zone calendar day the task is due
        clock: Source of "now"
        scheduled_for: Keep the task hidden until this instant

    Returns:
        The new task; the existing incomplete task if there is one; or None
        when the template already generated a task on ``target_date``
    """
    with span("template_service.materialize"):
        task, _ = await _materialize(template, target_date, clock=clock, scheduled_for=scheduled_for)
        return task


async def _materialize(
    template: RecurringTemplate,
    target_date: date,
    *,
    clock: Clock,
    scheduled_for: datetime | None,
) -> tuple[Task | None, bool]:
    """Materialize and report whether a new task was inserted.

    The open-task check and the insert share one transaction.
    """
    now = clock.now()
    try:
        async with db_client.transaction():
            active = await get_active_task_for_template(template_id=template.id, user_id=template.user_id)
            if active is not None:
                logger.debug(
                    "Template already has an active task",
                    extra={"template_id": template.id, "task_id": active.id},
                )
                return active, False

            if _generated_on(template, target_date):
                logger.debug(
                    "Template already generated a task for this day",
                    extra={"template_id": template.id, "target_date": target_date.isoformat()},
                )
                return None, False

            task = await task_service.insert_task(
                data={
                    "user_id": template.user_id,
                    "title": template.title,
                    "notes": template.notes,
                    "category": template.category,
                    "priority": template.priority,
                    "completed": False,
                    "completed_at": None,
                    "due_date": end_of_day(target_date, settings.app_timezone),
                    "is_recurring": True,
                    "recurring_pattern": template.recurring_pattern,
                    "template_id": template.id,
                    "scheduled_for": scheduled_for,
                }
            )
            await db_client.update_record(
                collection="recurring_templates",
                record_id=template.id,
                data={"last_generated_at": now},
            )
    except Exception as e:
        logger.error(
            "Failed to materialize template",
            extra={"template_id": template.id, "target_date": target_date.isoformat(), "error": str(e)},
        )
        raise

    log_with_context(
        logger,
        "info",
        "Materialized template",
        template_id=template.id,
        task_id=task.id,
        target_date=target_date.isoformat(),
    )
    return task, True


def should_regenerate_today(template: RecurringTemplate, now: datetime) -> bool:
    """Whether the template is active, due today and has not generated today."""
    today = local_date(now, settings.app_timezone)
    return template.active and is_due_on(template.rule, today) and not _generated_on(template, today)


async def run_regeneration_pass(*, clock: Clock = system_clock) -> RegenerationSummary:
    """Materialize today's instance for every active template that is due.

    A failing template is logged and counted; the pass moves on to the next one.
    """
    with span("template_service.run_regeneration_pass"):
        now = clock.now()
        today = local_date(now, settings.app_timezone)
        summary = RegenerationSummary()

        for template in await list_active_templates():
            summary.checked += 1
            if not should_regenerate_today(template, now):
                summary.skipped += 1
                continue
            try:
                _, created = await _materialize(template, target_date=today, clock=clock, scheduled_for=None)
            except Exception as e:
                summary.failed += 1
                logger.error(
                    "Regeneration failed for template",
                    extra={"template_id": template.id, "user_id": template.user_id, "error": str(e)},
                )
                continue

            if created:
                summary.created += 1
            else:
                summary.skipped += 1

        logger.info(
            "Regeneration pass complete",
            extra={
                "checked": summary.checked,
                "tasks_created": summary.created,
                "skipped": summary.skipped,
                "failed": summary.failed,
            },
        )
        return summary


def _check_enums(fields: dict[str, Any]) -> dict[str, Any]:
    try:
        if "category" in fields:
            fields["category"] = TaskCategory(fields["category"])
        if "priority" in fields:
            fields["priority"] = TaskPriority(fields["priority"])
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if "title" in fields and not str(fields["title"]).strip():
        msg = "Template title cannot be empty"
        raise ValidationError(msg)
    return fields


async def create_recurring_template(
    *,
    user_id: str,
    title: str,
    recurring_pattern: str,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    category: str = constants.DEFAULT_CATEGORY,
    notes: str | None = None,
    priority: str = constants.DEFAULT_PRIORITY,
    clock: Clock = system_clock,
) -> tuple[RecurringTemplate, Task | None]:
    """Create a template and materialize its first task.

    The first task is due on the first matching day counting today. When
    that day is in the future the task stays hidden until it starts.

    Returns:
        The template and its first task

    Raises:
        ValidationError: If the pattern parameters are malformed
    """
    with span("template_service.create_recurring_template"):
        rule = rule_from_fields(recurring_pattern, day_of_week, day_of_month)
        fields = _check_enums({"title": title, "category": category, "priority": priority})

        record = await db_client.create_record(
            collection="recurring_templates",
            data={
                "user_id": user_id,
                **fields,
                "notes": notes,
                **rule_to_fields(rule),
                "active": True,
                "last_generated_at": None,
            },
        )
        template = RecurringTemplate.model_validate(record)

        today = local_date(clock.now(), settings.app_timezone)
        first_day = next_occurrence(rule, today, include_anchor=True)
        scheduled_for = start_of_day(first_day, settings.app_timezone) if first_day > today else None
        task = await materialize(template=template, target_date=first_day, clock=clock, scheduled_for=scheduled_for)

        logger.info(
            "Created recurring template",
            extra={"template_id": template.id, "user_id": user_id, "pattern": template.recurring_pattern},
        )
        return template, task


async def get_template(*, template_id: str, user_id: str) -> RecurringTemplate:
    """Get a template owned by the user.

    Raises:
        NotFoundError: If the template does not exist or belongs to another user
    """
    with span("template_service.get_template"):
        try:
            record = await db_client.get_record(collection="recurring_templates", record_id=template_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("Template", template_id) from e
        if record["user_id"] != user_id:
            raise NotFoundError("Template", template_id)
        return RecurringTemplate.model_validate(record)


async def list_templates(*, user_id: str) -> list[RecurringTemplate]:
    with span("template_service.list_templates"):
        records = await db_client.list_all_records(
            collection="recurring_templates",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
            sort="id",
        )
        return [RecurringTemplate.model_validate(record) for record in records]


async def update_template(*, template_id: str, fields: dict[str, Any], user_id: str) -> RecurringTemplate:
    """Edit a template. Title, category, notes and priority carry over to its active task.

    Raises:
        NotFoundError: If the template does not exist or belongs to another user
        ValidationError: If a field is not editable or the pattern parameters are malformed
    """
    with span("template_service.update_template"):
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be edited: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)

        template = await get_template(template_id=template_id, user_id=user_id)
        data = _check_enums(dict(fields))

        if {"recurring_pattern", "day_of_week", "day_of_month"} & set(data):
            rule = rule_from_fields(
                data.get("recurring_pattern", template.recurring_pattern),
                data.get("day_of_week", template.day_of_week),
                data.get("day_of_month", template.day_of_month),
            )
            data.update(rule_to_fields(rule))

        if not data:
            return template

        async with db_client.transaction():
            record = await db_client.update_record(collection="recurring_templates", record_id=template_id, data=data)
            propagated = {key: data[key] for key in PROPAGATED_FIELDS if key in data}
            if "recurring_pattern" in data:
                propagated["recurring_pattern"] = data["recurring_pattern"]
            active = await get_active_task_for_template(template_id=template_id, user_id=user_id)
            if active is not None and propagated:
                await db_client.update_record(collection="tasks", record_id=active.id, data=propagated)

        logger.info("Updated template", extra={"template_id": template_id, "fields": sorted(data)})
        return RecurringTemplate.model_validate(record)


async def set_template_active(*, template_id: str, active: bool, user_id: str) -> RecurringTemplate:
    """Pause or resume a template. Paused templates are skipped by regeneration."""
    with span("template_service.set_template_active"):
        return await update_template(template_id=template_id, fields={"active": active}, user_id=user_id)


async def delete_template(*, template_id: str, user_id: str) -> bool:
    """Delete a template together with every task it generated.

    Returns:
        True when the template was deleted

    Raises:
        NotFoundError: If the template does not exist or belongs to another user
    """
    with span("template_service.delete_template"):
        await get_template(template_id=template_id, user_id=user_id)

        async with db_client.transaction():
            removed = await db_client.delete_records(
                collection="tasks",
                filter_query=f'template_id = "{db_client.sanitize_param(template_id)}"',
            )
            await db_client.delete_record(collection="recurring_templates", record_id=template_id)

        logger.info("Deleted template", extra={"template_id": template_id, "tasks_removed": removed})
        return True
