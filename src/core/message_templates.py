"""Centralized message templates for daily reminder notifications.

All user-facing notification strings are defined here so the monster's
voice can be changed in one place.
"""

import random


MOTIVATIONAL_MESSAGES = (
    "Let's chomp through your tasks today!",
    "Your monster is hungry for completed tasks!",
    "Time to be productive and feed Chomper!",
    "Ready to crush it? Your tasks are waiting!",
    "Another day, another chance to be awesome!",
    "Let's make today count - Chomper believes in you!",
    "Rise and grind! Your monster needs feeding!",
    "Today is a fresh start - let's get chomping!",
)

REST_DAY_MESSAGES = (
    "No tasks today! Maybe add some or enjoy a well-deserved rest.",
    "Your task list is clear! Take it easy or plan something new.",
    "Chomper's taking a nap - no tasks to chomp today!",
    "Empty to-do list? Either you're super organized or it's rest day!",
    "Nothing on the agenda - treat yourself today!",
    "All clear! Enjoy the freedom or plan your next adventure.",
)


def daily_title(*, task_count: int) -> str:
    if task_count == 0:
        return "Good Morning!"
    if task_count == 1:
        return "1 Task Today!"
    return f"{task_count} Tasks Today!"


def daily_body(*, task_count: int, rng: random.Random | None = None) -> str:
    """Pick a body line: a rest-day message when nothing is due, else a motivational one."""
    rng = rng or random.Random()
    pool = REST_DAY_MESSAGES if task_count == 0 else MOTIVATIONAL_MESSAGES
    return rng.choice(pool)


def ping_title() -> str:
    return "Test Notification"


def ping_body() -> str:
    return "Chomper says hi! Notifications are working."
