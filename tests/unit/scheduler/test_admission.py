"""
Unit tests for AdmissionController.

Each ceiling is driven to its limit on its own to check that it alone
blocks admission and is reported as the limiting factor.
"""

import pytest

from insightflow_scheduler.scheduler.admission import AdmissionController
from insightflow_scheduler.scheduler.config import RateLimitConfig
from insightflow_scheduler.scheduler.ledger import UsageLedger
from insightflow_scheduler.scheduler.window import GlobalWindowTracker
from insightflow_scheduler.types.rate_limit import RateLimitType


class TestAdmissionController:
    """Tests for check(), can_admit_now() and commit()."""

    @pytest.fixture
    def ledger(self, clock):
        """Create a ledger on the fake clock."""
        return UsageLedger(clock=clock)

    @pytest.fixture
    def window(self, clock):
        """Create a window tracker on the fake clock."""
        return GlobalWindowTracker(clock=clock)

    @pytest.fixture
    def make_controller(self, ledger, window):
        """Build a controller for a given configuration."""

        def _make(**overrides):
            config = RateLimitConfig(**overrides)
            return AdmissionController(lambda: config, ledger, window)

        return _make

    def test_admits_with_headroom(self, make_controller):
        """All ceilings open: admitted with remaining counts reported."""
        controller = make_controller(requests_per_minute=10, tokens_per_minute=5000)

        result = controller.check(1000, active_count=0)

        assert result.can_proceed is True
        assert result.limiting_factor is None
        assert result.remaining_requests == 10
        assert result.remaining_tokens == 5000

    def test_concurrency_ceiling(self, make_controller):
        """Active count at the concurrency limit blocks admission."""
        controller = make_controller(max_concurrent_requests=2)

        result = controller.check(100, active_count=2)

        assert result.can_proceed is False
        assert result.limiting_factor is RateLimitType.CONCURRENCY

    def test_rpm_ceiling(self, make_controller, window):
        """A full request window blocks admission."""
        controller = make_controller(requests_per_minute=3)
        for _ in range(3):
            window.record_event(1)

        result = controller.check(1, active_count=0)

        assert result.can_proceed is False
        assert result.limiting_factor is RateLimitType.RPM
        assert result.remaining_requests == 0

    def test_tpm_ceiling(self, make_controller, window):
        """A request needing more tokens than remain is blocked."""
        controller = make_controller(requests_per_minute=10, tokens_per_minute=1000)
        window.record_event(900)

        result = controller.check(200, active_count=0)

        assert result.can_proceed is False
        assert result.limiting_factor is RateLimitType.TPM
        assert result.remaining_tokens == 100

    def test_tpm_exact_fit_admitted(self, make_controller, window):
        """Remaining tokens equal to the estimate is enough."""
        controller = make_controller(requests_per_minute=10, tokens_per_minute=1000)
        window.record_event(800)

        assert controller.can_admit_now(200, active_count=0) is True

    def test_rpd_ceiling(self, make_controller, ledger):
        """The daily total across callers blocks admission when spent."""
        controller = make_controller(requests_per_minute=100, requests_per_day=3)
        ledger.record_usage("alice", 1)
        ledger.record_usage("bob", 1)
        ledger.record_usage("carol", 1)

        result = controller.check(1, active_count=0)

        assert result.can_proceed is False
        assert result.limiting_factor is RateLimitType.RPD

    def test_window_rolls_capacity_back(self, make_controller, window, clock):
        """Capacity returns once the window slides past old events."""
        controller = make_controller(requests_per_minute=1)
        window.record_event(1)
        assert controller.can_admit_now(1, 0) is False

        clock.advance(60)

        assert controller.can_admit_now(1, 0) is True

    def test_commit_records_everywhere(self, make_controller, ledger, window):
        """commit() updates both the caller ledger and the global window."""
        controller = make_controller()

        controller.commit("alice", 750)

        assert ledger.get("alice").tokens_used_today == 750
        snapshot = window.current_status()
        assert snapshot.requests_used == 1
        assert snapshot.tokens_used == 750

    def test_config_provider_read_per_decision(self, ledger, window):
        """A swapped configuration applies to the very next decision."""
        holder = {"config": RateLimitConfig(max_concurrent_requests=1)}
        controller = AdmissionController(lambda: holder["config"], ledger, window)
        assert controller.can_admit_now(1, active_count=1) is False

        holder["config"] = RateLimitConfig(max_concurrent_requests=2)

        assert controller.can_admit_now(1, active_count=1) is True
