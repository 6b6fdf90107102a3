"""Recurrence calculation for recurring task templates.

Pure functions over (rule, anchor). Weekly and monthly rules are turned into
CRON expressions and stepped with croniter; daily rules are a plain day add.
Day of week follows the CRON convention: 0=Sunday .. 6=Saturday.
"""

from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from src.core.config import constants
from src.core.errors import ValidationError
from src.domain.task import RecurringPattern
from src.domain.template import Daily, Monthly, RecurrenceRule, Weekly


WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_END_OF_DAY = time(23, 59, 59, 999000)


def to_cron(rule: RecurrenceRule) -> str:
    """CRON expression firing at local midnight on every day the rule is due."""
    match rule:
        case Daily():
            return "0 0 * * *"
        case Weekly(day_of_week=day_of_week):
            return f"0 0 * * {day_of_week}"
        case Monthly(day_of_month=day_of_month):
            return f"0 0 {day_of_month} * *"


def next_occurrence(rule: RecurrenceRule, anchor: date, *, include_anchor: bool = False) -> date:
    """Compute the next date the rule is due, relative to ``anchor``.

    Args:
        rule: Daily, Weekly or Monthly rule
        anchor: Reference calendar day (usually "today" in the app zone)
        include_anchor: Allow the anchor itself to be returned when it matches.
            Only used when a template is first created.

    Returns:
        The occurrence date. Daily rules return ``anchor + 1`` (or the anchor
        itself with ``include_anchor``). Weekly rules return the next matching
        weekday strictly after the anchor unless ``include_anchor`` is set.
        Monthly rules return the configured day of the anchor's month while it
        has not passed, otherwise the same day of the following month.
    """
    match rule:
        case Daily():
            return anchor if include_anchor else anchor + timedelta(days=1)
        case Weekly():
            return _cron_next(rule, anchor, inclusive=include_anchor)
        case Monthly():
            return _cron_next(rule, anchor, inclusive=True)


def _cron_next(rule: RecurrenceRule, anchor: date, *, inclusive: bool) -> date:
    start = datetime.combine(anchor, time.min)
    if inclusive:
        # croniter only yields instants strictly after the start
        start -= timedelta(seconds=1)
    return croniter(to_cron(rule), start).get_next(datetime).date()


def is_due_on(rule: RecurrenceRule, day: date) -> bool:
    """Whether the rule fires on the given calendar day."""
    match rule:
        case Daily():
            return True
        case Weekly(day_of_week=day_of_week):
            # date.weekday() is 0=Monday; shift to 0=Sunday
            return (day.weekday() + 1) % 7 == day_of_week
        case Monthly(day_of_month=day_of_month):
            return day.day == day_of_month


def rule_from_fields(
    pattern: str | RecurringPattern,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> RecurrenceRule:
    """Build a typed rule from flat template columns.

    Raises:
        ValidationError: If the pattern is unknown or its parameter is missing
            or out of range
    """
    try:
        pattern = RecurringPattern(pattern)
    except ValueError as e:
        msg = f"Unknown recurrence pattern: {pattern!r}"
        raise ValidationError(msg) from e

    match pattern:
        case RecurringPattern.DAILY:
            return Daily()
        case RecurringPattern.WEEKLY:
            if day_of_week is None:
                msg = "Weekly recurrence requires day_of_week"
                raise ValidationError(msg)
            if not 0 <= day_of_week <= constants.MAX_DAY_OF_WEEK:
                msg = f"day_of_week must be between 0 and {constants.MAX_DAY_OF_WEEK}, got {day_of_week}"
                raise ValidationError(msg)
            return Weekly(day_of_week=day_of_week)
        case RecurringPattern.MONTHLY:
            if day_of_month is None:
                msg = "Monthly recurrence requires day_of_month"
                raise ValidationError(msg)
            if not 1 <= day_of_month <= constants.MAX_DAY_OF_MONTH:
                msg = f"day_of_month must be between 1 and {constants.MAX_DAY_OF_MONTH}, got {day_of_month}"
                raise ValidationError(msg)
            return Monthly(day_of_month=day_of_month)


def _ordinal(n: int) -> str:
    suffix = "th"
    if n % 10 == 1 and n != 11:
        suffix = "st"
    elif n % 10 == 2 and n != 12:
        suffix = "nd"
    elif n % 10 == 3 and n != 13:
        suffix = "rd"
    return f"{n}{suffix}"


def describe(rule: RecurrenceRule) -> str:
    """Human-readable label, e.g. "every Monday" or "monthly on the 3rd"."""
    match rule:
        case Daily():
            return "daily"
        case Weekly(day_of_week=day_of_week):
            return f"every {WEEKDAY_NAMES[day_of_week]}"
        case Monthly(day_of_month=day_of_month):
            return f"monthly on the {_ordinal(day_of_month)}"


def get_zone(tz: str | tzinfo) -> tzinfo:
    """Resolve an IANA name to a tzinfo, passing tzinfo instances through."""
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        msg = f"Unknown timezone: {tz!r}"
        raise ValidationError(msg) from e


def local_date(instant: datetime, tz: str | tzinfo) -> date:
    """Calendar day of ``instant`` as seen in ``tz``."""
    return instant.astimezone(get_zone(tz)).date()


def start_of_day(day: date, tz: str | tzinfo) -> datetime:
    """Local midnight of ``day`` in ``tz``, returned in UTC."""
    return datetime.combine(day, time.min, tzinfo=get_zone(tz)).astimezone(UTC)


def end_of_day(day: date, tz: str | tzinfo) -> datetime:
    """23:59:59.999 local on ``day`` in ``tz``, returned in UTC."""
    return datetime.combine(day, _END_OF_DAY, tzinfo=get_zone(tz)).astimezone(UTC)


def day_delta(earlier: date, later: date) -> int:
    """Whole calendar days from ``earlier`` to ``later``."""
    return (later - earlier).days
