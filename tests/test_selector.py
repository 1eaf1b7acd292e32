from petcare.reminders.repository import get_due_reminders, tick_window_end
from tests.helpers import utc

NOW = utc(2024, 1, 1, 10, 0, 30)


def test_window_ends_at_the_last_millisecond_of_the_minute():
    assert tick_window_end(NOW) == utc(2024, 1, 1, 10, 0, 59, 999000)
    assert tick_window_end(utc(2024, 1, 1, 10, 0, 0)) == utc(2024, 1, 1, 10, 0, 59, 999000)


def test_reminder_later_in_the_same_minute_is_due(db, make_reminder):
    late_in_minute = make_reminder(utc(2024, 1, 1, 10, 0, 58))
    next_minute = make_reminder(utc(2024, 1, 1, 10, 1, 0))

    due_ids = [r.id for r in get_due_reminders(db, NOW)]

    assert late_in_minute.id in due_ids
    assert next_minute.id not in due_ids


def test_overdue_reminders_are_due_and_inactive_ones_are_not(db, make_reminder):
    overdue = make_reminder(utc(2023, 12, 31, 8, 0), recurrence_rule="FREQ=DAILY")
    make_reminder(utc(2024, 1, 1, 9, 0), is_active=False)

    due = get_due_reminders(db, NOW)

    assert [r.id for r in due] == [overdue.id]


def test_due_reminders_come_oldest_first_and_respect_the_limit(db, make_reminder):
    second = make_reminder(utc(2024, 1, 1, 9, 0))
    first = make_reminder(utc(2024, 1, 1, 8, 0))
    make_reminder(utc(2024, 1, 1, 10, 0))

    due = get_due_reminders(db, NOW, limit=2)

    assert [r.id for r in due] == [first.id, second.id]


def test_no_due_reminders(db, make_reminder):
    make_reminder(utc(2024, 1, 2, 10, 0))

    assert get_due_reminders(db, NOW) == []
