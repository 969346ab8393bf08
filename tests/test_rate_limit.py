"""Tests for the rate limiter and its ban ladder."""

import pytest

from ledgerbot.core.rate_limit import (
    ALLOWED,
    ActionClass,
    DenialReason,
    Denied,
    RateLimiter,
)


@pytest.fixture
def limiter(clock) -> RateLimiter:
    return RateLimiter(
        max_requests=3, window_seconds=60, max_warnings=3, ban_seconds=1800, clock=clock
    )


def exhaust(limiter: RateLimiter, user_id: int, times: int = 3) -> None:
    for _ in range(times):
        assert limiter.check(user_id) is ALLOWED


class TestWindow:
    """Tests for fixed-window counting."""

    def test_allows_up_to_max_requests(self, limiter):
        """Test that exactly max_requests calls pass in one window."""
        exhaust(limiter, 1)

        assert limiter.get_record(1).count == 3

    def test_denies_after_max_with_bounded_wait(self, limiter, clock):
        """Test the call after max_requests reports a wait within the window."""
        exhaust(limiter, 1)
        clock.advance(20)

        decision = limiter.check(1)

        assert isinstance(decision, Denied)
        assert decision.reason is DenialReason.WINDOW_EXCEEDED
        assert 1 <= decision.retry_after_seconds <= 60
        assert decision.retry_after_seconds == 40
        assert "Warning 1/3" in decision.message

    def test_window_resets_after_elapsed(self, limiter, clock):
        """Test the count restarts once the window has passed."""
        exhaust(limiter, 1)
        clock.advance(61)

        assert limiter.check(1) is ALLOWED
        assert limiter.get_record(1).count == 1

    def test_window_boundary_is_exclusive(self, limiter, clock):
        """Test a call exactly at the window edge still counts in the old window."""
        exhaust(limiter, 1)
        clock.advance(60)

        assert isinstance(limiter.check(1), Denied)

    def test_users_are_independent(self, limiter):
        """Test one user's window does not affect another's."""
        exhaust(limiter, 1)

        assert limiter.check(2) is ALLOWED

    def test_record_counts_without_gating(self, limiter):
        """Test record() increments the current window."""
        limiter.record(1)
        limiter.record(1)

        assert limiter.get_record(1).count == 2


class TestBanLadder:
    """Tests for warnings and temporary bans."""

    def test_ban_after_max_warnings(self, limiter, clock):
        """Test the third window violation converts into a ban."""
        exhaust(limiter, 1)

        first = limiter.check(1)
        second = limiter.check(1)
        third = limiter.check(1)

        assert first.warnings == 1
        assert second.warnings == 2
        assert third.reason is DenialReason.BAN_ISSUED
        assert "30 minutes" in third.message
        assert limiter.get_ban(1).expires_at == clock.now + 1800
        assert limiter.get_record(1) is None

    def test_banned_user_denied_regardless_of_window(self, limiter, clock):
        """Test every call during the ban is rejected, even in a new window."""
        exhaust(limiter, 1)
        for _ in range(3):
            limiter.check(1)

        clock.advance(120)
        decision = limiter.check(1)

        assert decision.reason is DenialReason.BANNED
        assert "28 minutes" in decision.message
        assert limiter.is_banned(1)

    def test_ban_expiry_starts_fresh(self, limiter, clock):
        """Test the first call after expiry sees a new window with no warnings."""
        exhaust(limiter, 1)
        for _ in range(3):
            limiter.check(1)

        clock.advance(1800)

        assert limiter.check(1) is ALLOWED
        assert limiter.get_ban(1) is None
        record = limiter.get_record(1)
        assert record.count == 1
        assert record.warnings == 0

    def test_ban_applies_to_whitelisted_commands(self, limiter, clock):
        """Test a ban refuses /help until it expires."""
        exhaust(limiter, 1)
        for _ in range(3):
            limiter.check(1)

        assert limiter.check(1, command="/help").reason is DenialReason.BANNED
        assert limiter.check(1, command="/start").reason is DenialReason.BANNED
        assert limiter.check(1, command="/balance").reason is DenialReason.BANNED

        clock.advance(1800)

        assert limiter.check(1, command="/help") is ALLOWED
        assert limiter.get_ban(1) is None

    def test_whitelist_does_not_count(self, limiter):
        """Test whitelisted commands leave the window untouched."""
        for _ in range(10):
            limiter.check(1, command="/support")

        assert limiter.get_record(1) is None


class TestActionClasses:
    """Tests for per-action windows."""

    def test_login_class_limit(self, limiter):
        """Test the login class allows five calls then denies without warnings."""
        for _ in range(5):
            assert limiter.check(1, ActionClass.LOGIN) is ALLOWED

        decision = limiter.check(1, "login")

        assert decision.reason is DenialReason.WINDOW_EXCEEDED
        assert decision.warnings == 0
        assert decision.message.startswith("Rate limit exceeded. Please try again in")
        assert decision.retry_after_seconds <= 300

    def test_action_class_exceed_never_bans(self, limiter):
        """Test repeated action-class violations do not feed the ban ladder."""
        for _ in range(3):
            limiter.check(1, ActionClass.OTP)
        for _ in range(10):
            limiter.check(1, ActionClass.OTP)

        assert not limiter.is_banned(1)
        assert limiter.check(1) is ALLOWED

    def test_classes_are_independent(self, limiter):
        """Test exhausting the default class leaves KYC open."""
        exhaust(limiter, 1)

        assert limiter.check(1, ActionClass.KYC) is ALLOWED


class TestSweep:
    """Tests for periodic cleanup."""

    def test_sweep_purges_elapsed_windows(self, limiter, clock):
        """Test sweep drops windows older than their size."""
        limiter.check(1)
        limiter.check(2, ActionClass.LOGIN)
        clock.advance(61)

        removed = limiter.sweep()

        assert removed == 1
        assert limiter.get_record(1) is None
        assert limiter.get_record(2, ActionClass.LOGIN) is not None

    def test_sweep_removes_expired_bans(self, limiter, clock):
        """Test sweep lifts bans past expiry."""
        exhaust(limiter, 1)
        for _ in range(3):
            limiter.check(1)
        clock.advance(1801)

        limiter.sweep()

        assert limiter.get_ban(1) is None

    def test_sweep_keeps_active_window(self, limiter, clock):
        """Test a window refreshed after scheduling survives the sweep."""
        limiter.check(1)
        clock.advance(61)
        limiter.check(1)
        clock.advance(30)

        limiter.sweep()

        assert limiter.get_record(1).count == 1
