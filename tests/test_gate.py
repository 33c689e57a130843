from dataclasses import dataclass
from datetime import date, datetime, timezone

from storeaudit.client.gate import DailyCaptureGate, can_start_new_capture_today

TODAY = date(2026, 10, 19)


@dataclass
class _Audit:
    user_id: str
    store_id: str
    audit_date: datetime


def _on(day: date, user="u1", store="s1", hour=9):
    return _Audit(user, store, datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc))


class TestCanStartNewCaptureToday:

    def test_first_ever_audit_allowed(self):
        assert can_start_new_capture_today("u1", "s1", [], today=TODAY, tz=timezone.utc)

    def test_audit_today_blocks(self):
        history = [_on(date(2026, 10, 1)), _on(TODAY)]
        assert not can_start_new_capture_today("u1", "s1", history, today=TODAY, tz=timezone.utc)

    def test_prior_day_allows(self):
        history = [_on(date(2026, 10, 18))]
        assert can_start_new_capture_today("u1", "s1", history, today=TODAY, tz=timezone.utc)

    def test_other_users_audits_are_ignored(self):
        history = [_on(TODAY, user="u2")]
        assert can_start_new_capture_today("u1", "s1", history, today=TODAY, tz=timezone.utc)

    def test_naive_dates_are_utc(self):
        history = [_Audit("u1", "s1", datetime(2026, 10, 19, 23, 30))]
        assert not can_start_new_capture_today("u1", "s1", history, today=TODAY, tz=timezone.utc)


class TestDailyCaptureGate:

    def _gate(self, day=TODAY):
        return DailyCaptureGate(today=lambda: day, tz=timezone.utc)

    def test_hidden_when_done_today(self):
        decision = self._gate().evaluate("u1", "s1", [_on(TODAY)])
        assert decision.allowed is False
        assert decision.capture_visible is False
        assert decision.should_prompt is False

    def test_first_ever_visible_without_prompt(self):
        decision = self._gate().evaluate("u1", "s1", [])
        assert decision.allowed and decision.capture_visible
        assert decision.should_prompt is False

    def test_prompts_once_per_day(self):
        gate = self._gate()
        history = [_on(date(2026, 10, 17))]
        assert gate.evaluate("u1", "s1", history).should_prompt is True
        assert gate.evaluate("u1", "s1", history).should_prompt is False

    def test_decline_suppresses_for_the_day_only(self):
        current = {"day": TODAY}
        gate = DailyCaptureGate(today=lambda: current["day"], tz=timezone.utc)
        history = [_on(date(2026, 10, 17))]

        gate.evaluate("u1", "s1", history)
        gate.decline("u1", "s1")
        decision = gate.evaluate("u1", "s1", history)
        assert decision.should_prompt is False
        assert decision.capture_visible is True
        assert gate.declined_today("u1", "s1")

        current["day"] = date(2026, 10, 20)
        assert gate.evaluate("u1", "s1", history).should_prompt is True
        assert not gate.declined_today("u1", "s1")

    def test_accept_opens_session(self):
        gate = self._gate()
        gate.decline("u1", "s1")
        assert gate.accept("u1", "s1") is True
        assert not gate.declined_today("u1", "s1")

    def test_prompt_is_per_store(self):
        gate = self._gate()
        history = [_on(date(2026, 10, 17), store="s1"), _on(date(2026, 10, 17), store="s2")]
        gate.evaluate("u1", "s1", history)
        gate.decline("u1", "s1")
        assert gate.evaluate("u1", "s2", history).should_prompt is True
