"""Tests for the derived project fields: phase status, progress and display dates."""
from datetime import date
from types import SimpleNamespace
from portal.services.portal_data import (
    phase_status_for, progress_percent, format_display_date, days_remaining,
    strip_pm_prefix, is_reminder_task
)


def tasks(*completed):
    return [SimpleNamespace(completed=c, label='task') for c in completed]


def test_phase_status():
    assert phase_status_for(tasks(False, False)) == 'pending'
    assert phase_status_for(tasks(True, False)) == 'in-progress'
    assert phase_status_for(tasks(True, True)) == 'completed'


def test_progress_rounds_half_up():
    assert progress_percent([]) == 0
    assert progress_percent(tasks(True, False, False)) == 33
    assert progress_percent(tasks(True, True, False)) == 67
    # 1/8 = 12.5% rounds up, unlike round()
    assert progress_percent(tasks(True, *([False] * 7))) == 13
    assert progress_percent(tasks(True, True)) == 100


def test_display_date():
    assert format_display_date(date(2024, 1, 5)) == 'January 5, 2024'
    assert format_display_date(None) == ''


def test_days_remaining():
    reference = date(2024, 1, 10)
    assert days_remaining(date(2024, 1, 15), reference) == 5
    assert days_remaining(date(2024, 1, 8), reference) == -2
    assert days_remaining(None, reference) is None


def test_pm_prefixes():
    assert strip_pm_prefix('[PM] Confirm power') == 'Confirm power'
    assert strip_pm_prefix('[PM-TEXT]   Wifi name') == 'Wifi name'
    assert strip_pm_prefix('[PM-DATE] Pick a day') == 'Pick a day'
    assert strip_pm_prefix('Install [PM] later') == 'Install [PM] later'

    assert is_reminder_task(SimpleNamespace(label='[PM] Confirm'))
    assert is_reminder_task(SimpleNamespace(label='[PM-TEXT] Wifi'))
    assert not is_reminder_task(SimpleNamespace(label='[PM-DATE] Pick a day'))
    assert not is_reminder_task(SimpleNamespace(label=None))
