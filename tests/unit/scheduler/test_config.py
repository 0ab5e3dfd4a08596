import pytest

from insightflow_scheduler.exceptions import ConfigurationError
from insightflow_scheduler.scheduler.config import (
    DispatchPolicy,
    ProgressiveAnalysisConfig,
    RateLimitConfig,
)
from insightflow_scheduler.types.request import Priority


class TestDispatchPolicy:
    def test_enum_values(self):
        """Test DispatchPolicy enum values."""
        assert DispatchPolicy.HEAD_OF_LINE.value == "head_of_line"
        assert DispatchPolicy.FIRST_FIT.value == "first_fit"


class TestRateLimitConfig:
    def test_default_values(self):
        """Test default configuration values."""
        config = RateLimitConfig()

        # Ceilings
        assert config.requests_per_minute == 3
        assert config.tokens_per_minute == 15000
        assert config.requests_per_day == 12000
        assert config.max_concurrent_requests == 2
        assert config.caller_daily_share == 10

        # Queueing
        assert config.max_queue_size == 50
        assert config.scheduler_interval == 1.0
        assert config.dispatch_policy is DispatchPolicy.HEAD_OF_LINE

        # Request defaults
        assert config.default_priority is Priority.MEDIUM
        assert config.default_estimated_tokens == 2000
        assert config.default_max_wait_time == 300.0

        # Ledger maintenance
        assert config.usage_sweep_interval == 3600.0
        assert config.usage_max_age == 86400.0

        assert config.metrics_enabled is True

    def test_per_caller_daily_limit(self):
        """Test that each caller gets a tenth of the daily budget by default."""
        assert RateLimitConfig().per_caller_daily_limit == 1200
        assert RateLimitConfig(requests_per_day=25).per_caller_daily_limit == 2
        assert (
            RateLimitConfig(requests_per_day=100, caller_daily_share=4).per_caller_daily_limit
            == 25
        )

    @pytest.mark.parametrize(
        "field_name",
        [
            "requests_per_minute",
            "tokens_per_minute",
            "requests_per_day",
            "max_concurrent_requests",
            "caller_daily_share",
            "default_estimated_tokens",
        ],
    )
    def test_validation_positive_integers(self, field_name):
        """Test that ceilings reject zero and negative values."""
        with pytest.raises(ValueError, match=field_name):
            RateLimitConfig(**{field_name: 0})
        with pytest.raises(ValueError, match=field_name):
            RateLimitConfig(**{field_name: -1})

    def test_validation_max_queue_size(self):
        """Test that zero is a valid queue size but negatives are not."""
        assert RateLimitConfig(max_queue_size=0).max_queue_size == 0
        with pytest.raises(ValueError, match="max_queue_size"):
            RateLimitConfig(max_queue_size=-1)

    @pytest.mark.parametrize(
        "field_name",
        ["scheduler_interval", "default_max_wait_time", "usage_sweep_interval", "usage_max_age"],
    )
    def test_validation_positive_durations(self, field_name):
        """Test that durations must be positive."""
        with pytest.raises(ValueError, match=field_name):
            RateLimitConfig(**{field_name: 0})

    def test_coerces_string_enums(self):
        """Test that string values are accepted for enum fields."""
        config = RateLimitConfig(dispatch_policy="first_fit", default_priority="high")
        assert config.dispatch_policy is DispatchPolicy.FIRST_FIT
        assert config.default_priority is Priority.HIGH

    def test_with_overrides(self):
        """Test that overrides produce a new validated copy."""
        base = RateLimitConfig()
        updated = base.with_overrides(requests_per_minute=30, max_queue_size=5)

        assert updated.requests_per_minute == 30
        assert updated.max_queue_size == 5
        assert base.requests_per_minute == 3

    def test_with_overrides_unknown_option(self):
        """Test that unknown option names raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="requests_per_hour"):
            RateLimitConfig().with_overrides(requests_per_hour=10)

    def test_with_overrides_invalid_value(self):
        """Test that invalid override values raise ValueError."""
        with pytest.raises(ValueError, match="tokens_per_minute"):
            RateLimitConfig().with_overrides(tokens_per_minute=0)

    def test_to_dict(self):
        """Test JSON-friendly export of enum fields."""
        data = RateLimitConfig().to_dict()
        assert data["dispatch_policy"] == "head_of_line"
        assert data["default_priority"] == 1
        assert data["requests_per_minute"] == 3


class TestProgressiveAnalysisConfig:
    def test_default_values(self):
        """Test default orchestrator configuration."""
        config = ProgressiveAnalysisConfig()

        assert config.quick_priority is Priority.HIGH
        assert config.comprehensive_priority is Priority.MEDIUM
        assert config.quick_estimated_tokens < config.comprehensive_estimated_tokens
        assert config.quick_scan_document_limit == 2
        assert config.fallback_confidence_boost == 0.2

    def test_validation(self):
        """Test orchestrator configuration validation."""
        with pytest.raises(ValueError, match="token estimates"):
            ProgressiveAnalysisConfig(quick_estimated_tokens=0)
        with pytest.raises(ValueError, match="quick_scan_document_limit"):
            ProgressiveAnalysisConfig(quick_scan_document_limit=0)
        with pytest.raises(ValueError, match="fallback_confidence_boost"):
            ProgressiveAnalysisConfig(fallback_confidence_boost=1.5)

    def test_priority_strings(self):
        """Test that priorities may be given as names."""
        config = ProgressiveAnalysisConfig(quick_priority="medium", comprehensive_priority="low")
        assert config.quick_priority is Priority.MEDIUM
        assert config.comprehensive_priority is Priority.LOW
