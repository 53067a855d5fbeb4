"""
Tests for the delivery calendar policy and time slot helpers.

All tests run against a fixed "today" (Monday 2026-10-19), so the window is
Tue 2026-10-20 .. Mon 2026-10-26 with Sunday 2026-10-25 inside it.
"""

from datetime import date, timedelta

import pytest

from flower_checkout.checkout.delivery_calendar import (
    BlockedDateSet,
    BlockReason,
    DeliveryCalendarPolicy,
    SelectionStatus,
    is_valid_time_slot,
    normalize_time_slot,
    parse_iso_date,
    recover_time_slot,
)
from flower_checkout.checkout.messages import CheckoutMessages

TODAY = date(2026, 10, 19)
SUNDAY = date(2026, 10, 25)


def make_policy(*off_days, today=TODAY):
    return DeliveryCalendarPolicy(
        blocked=BlockedDateSet.from_iso(off_days),
        today=lambda: today,
    )


class TestDeliveryWindow:
    """The rolling window starts tomorrow and spans seven days."""

    def test_window_bounds(self):
        window = make_policy().window()
        assert window.start == date(2026, 10, 20)
        assert window.end == date(2026, 10, 26)

    def test_window_follows_today(self):
        """A session crossing midnight sees the new window on the next call."""
        current = {"today": TODAY}
        policy = DeliveryCalendarPolicy(today=lambda: current["today"])
        assert policy.window().start == date(2026, 10, 20)

        current["today"] = TODAY + timedelta(days=1)
        assert policy.window().start == date(2026, 10, 21)
        assert policy.window().end == date(2026, 10, 27)

    def test_window_days_lists_every_day(self):
        days = make_policy().window().days()
        assert len(days) == 7
        assert days[0] == date(2026, 10, 20)
        assert days[-1] == date(2026, 10, 26)


class TestBlocking:
    def test_sunday_always_blocked(self):
        policy = make_policy()
        assert policy.block_reason(SUNDAY) == BlockReason.SUNDAY
        # Sundays are blocked even outside the window
        assert policy.is_blocked(date(2026, 11, 1))

    def test_off_day_blocked(self):
        policy = make_policy("2026-10-22")
        assert policy.block_reason(date(2026, 10, 22)) == BlockReason.OFF_DAY
        assert not policy.is_blocked(date(2026, 10, 21))

    def test_sunday_wins_over_off_day(self):
        policy = make_policy("2026-10-25")
        assert policy.block_reason(SUNDAY) == BlockReason.SUNDAY

    def test_available_dates_skip_blocked_days(self):
        policy = make_policy("2026-10-22")
        available = policy.available_dates()
        assert date(2026, 10, 22) not in available
        assert SUNDAY not in available
        assert len(available) == 5

    def test_malformed_off_days_ignored(self):
        blocked = BlockedDateSet.from_iso(["2026-10-22", "not-a-date", ""])
        assert blocked.to_iso() == ["2026-10-22"]


class TestNextAllowed:
    def test_defaults_to_window_start(self):
        assert make_policy().next_allowed() == date(2026, 10, 20)

    def test_skips_sunday(self):
        assert make_policy().next_allowed(SUNDAY) == date(2026, 10, 26)

    def test_skips_consecutive_off_days(self):
        policy = make_policy("2026-10-20", "2026-10-21")
        assert policy.next_allowed() == date(2026, 10, 22)

    def test_never_leaves_window_and_never_blocked(self):
        policy = make_policy("2026-10-21", "2026-10-23")
        for offset in range(-3, 12):
            preferred = TODAY + timedelta(days=offset)
            result = policy.next_allowed(preferred)
            if result is not None:
                assert policy.window().contains(result)
                assert not policy.is_blocked(result)

    def test_returns_none_when_nothing_left(self):
        policy = make_policy("2026-10-26")
        assert policy.next_allowed(SUNDAY) is None

    def test_returns_none_when_probe_budget_exhausted(self):
        policy = DeliveryCalendarPolicy(today=lambda: TODAY, max_probes=2)
        assert policy.next_allowed(date(2026, 10, 24)) == date(2026, 10, 24)
        # Saturday is fine, but from Sunday the budget is one probe short of Monday
        policy = DeliveryCalendarPolicy(today=lambda: TODAY, max_probes=1)
        assert policy.next_allowed(SUNDAY) is None


class TestManualSelection:
    def test_allowed_date_accepted(self):
        selection = make_policy().apply_manual_selection("2026-10-21")
        assert selection.date == date(2026, 10, 21)
        assert selection.status == SelectionStatus.ACCEPTED
        assert selection.notice is None
        assert not selection.requires_reprompt

    def test_sunday_advances_to_monday(self):
        selection = make_policy().apply_manual_selection("2026-10-25")
        assert selection.date == date(2026, 10, 26)
        assert selection.status == SelectionStatus.ADVANCED
        assert "2026-10-26" in selection.notice
        assert not selection.requires_reprompt

    def test_sunday_falls_back_when_nothing_ahead(self):
        selection = make_policy("2026-10-26").apply_manual_selection("2026-10-25")
        assert selection.date == date(2026, 10, 24)
        assert selection.status == SelectionStatus.ADVANCED

    def test_off_day_is_hard_stop(self):
        selection = make_policy("2026-10-22").apply_manual_selection("2026-10-22")
        assert selection.date == date(2026, 10, 22)
        assert selection.status == SelectionStatus.NEEDS_ACKNOWLEDGEMENT
        assert selection.notice == CheckoutMessages.DATE_OFF_DAY.format(date="2026-10-22")
        assert selection.requires_reprompt

    def test_past_date_clamped_to_window_start(self):
        selection = make_policy().apply_manual_selection("2026-10-01")
        assert selection.date == date(2026, 10, 20)
        assert selection.status == SelectionStatus.CLAMPED
        assert selection.notice == CheckoutMessages.DATE_CLAMPED_TO_EARLIEST.format(date="2026-10-20")

    def test_far_future_clamped_to_window_end(self):
        selection = make_policy().apply_manual_selection("2026-12-31")
        assert selection.date == date(2026, 10, 26)
        assert selection.status == SelectionStatus.CLAMPED

    def test_clamp_happens_before_blocking(self):
        """Clamped onto an off day, the off-day rule still applies."""
        selection = make_policy("2026-10-20").apply_manual_selection("2026-09-15")
        assert selection.date == date(2026, 10, 20)
        assert selection.status == SelectionStatus.NEEDS_ACKNOWLEDGEMENT

    def test_unparseable_input(self):
        selection = make_policy().apply_manual_selection("next friday")
        assert selection.date is None
        assert selection.status == SelectionStatus.INVALID
        assert selection.requires_reprompt

    def test_exhausted_window(self):
        policy = make_policy(
            "2026-10-20", "2026-10-21", "2026-10-22", "2026-10-23", "2026-10-24", "2026-10-26",
        )
        selection = policy.apply_manual_selection("2026-10-25")
        assert selection.date is None
        assert selection.status == SelectionStatus.EXHAUSTED
        assert selection.notice == CheckoutMessages.DATE_SCHEDULING_EXHAUSTED

    @pytest.mark.parametrize("raw", ["2026-10-20", "2026-10-25", "2026-10-03", "2027-01-01"])
    def test_selection_is_idempotent(self, raw):
        policy = make_policy()
        first = policy.apply_manual_selection(raw)
        second = policy.apply_manual_selection(first.date)
        assert second.date == first.date
        assert second.status == SelectionStatus.ACCEPTED


class TestEvaluateDate:
    def test_valid_date(self):
        assert make_policy().evaluate_date("2026-10-23") is None

    def test_missing_date(self):
        problem = make_policy().evaluate_date("")
        assert problem.code == "required"
        assert problem.kind == "validation"

    def test_out_of_window(self):
        problem = make_policy().evaluate_date("2026-10-19")
        assert problem.code == "out_of_window"

    def test_sunday(self):
        assert make_policy().evaluate_date("2026-10-25").code == "sunday"

    def test_off_day(self):
        assert make_policy("2026-10-23").evaluate_date("2026-10-23").code == "off_day"

    def test_exhaustion_is_a_scheduling_problem(self):
        policy = make_policy(
            "2026-10-20", "2026-10-21", "2026-10-22", "2026-10-23", "2026-10-24", "2026-10-26",
        )
        for raw in ("", "2026-10-22"):
            problem = policy.evaluate_date(raw)
            assert problem.code == "scheduling_exhausted"
            assert problem.kind == "scheduling"


class TestTimeSlots:
    @pytest.mark.parametrize("raw,expected", [
        ("11:00-17:00", "11:00-17:00"),
        (" 11:00 - 17:00 ", "11:00-17:00"),
        ("11:00 – 17:00", "11:00-17:00"),
        ("17:00—22:00", "17:00-22:00"),
        ("9:00-17:00", "09:00-17:00"),
        ("evening", "evening"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_time_slot(raw) == expected

    def test_only_enumerated_slots_are_valid(self):
        assert is_valid_time_slot("17:00 – 22:00")
        assert not is_valid_time_slot("09:00-17:00")
        assert not is_valid_time_slot("")

    def test_recovery_defaults_unknown_slots(self):
        assert recover_time_slot("17:00-22:00") == "17:00-22:00"
        assert recover_time_slot("lunchtime") == "11:00-17:00"


class TestParseIsoDate:
    def test_parses_iso_and_datetime_prefix(self):
        assert parse_iso_date("2026-10-20") == date(2026, 10, 20)
        assert parse_iso_date("2026-10-20T09:30:00Z") == date(2026, 10, 20)

    def test_rejects_garbage(self):
        assert parse_iso_date("20/10/2026") is None
        assert parse_iso_date(None) is None
        assert parse_iso_date("   ") is None
