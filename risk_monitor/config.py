"""
Risk Monitor - Configuration.

============================================================
PURPOSE
============================================================
Runtime settings for the risk monitor and the default
catalog of rollout risk metrics.

============================================================
THRESHOLD PHILOSOPHY
============================================================
Two thresholds per metric:
- WARNING threshold: elevated concern, not yet critical
- CRITICAL threshold: act now

Each metric carries its own polarity. For most metrics a
rising value is bad (storage usage, upload time). For rate
metrics a falling value is bad (upload success rate,
adoption), so their warning line sits ABOVE the critical one.

============================================================
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List

from .types import (
    RiskCategory,
    RiskMetric,
    RiskSeverityLabel,
    ThresholdDirection,
    RiskConfigurationError,
)


# ============================================================
# MONITOR CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskMonitorConfig:
    """
    Configuration for the periodic risk evaluation loop.

    ============================================================
    PARAMETERS
    ============================================================
    check_interval_seconds:
        Default interval between evaluation cycles (5 minutes).
    trend_stable_band_pct:
        Percent change below which a trend is "stable".
    callback_timeout_seconds:
        Upper bound on one alert observer invocation.
    max_observer_threads:
        Threads reserved for sync alert observers. When all are
        busy, further sync observers are skipped.
    record_history:
        Persist every successful sample to the history store.
    ============================================================
    """

    check_interval_seconds: float = 300.0
    trend_stable_band_pct: float = 5.0
    callback_timeout_seconds: float = 5.0
    max_observer_threads: int = 4
    record_history: bool = True

    def __post_init__(self) -> None:
        if self.check_interval_seconds <= 0:
            raise RiskConfigurationError(
                f"check_interval_seconds must be positive, got {self.check_interval_seconds}"
            )
        if self.callback_timeout_seconds <= 0:
            raise RiskConfigurationError(
                f"callback_timeout_seconds must be positive, got {self.callback_timeout_seconds}"
            )
        if self.max_observer_threads < 1:
            raise RiskConfigurationError(
                f"max_observer_threads must be at least 1, got {self.max_observer_threads}"
            )
        if self.trend_stable_band_pct < 0:
            raise RiskConfigurationError(
                f"trend_stable_band_pct must not be negative, got {self.trend_stable_band_pct}"
            )

    @classmethod
    def from_env(cls) -> "RiskMonitorConfig":
        """Build config from RISK_* environment variables."""
        return cls(
            check_interval_seconds=float(os.getenv("RISK_CHECK_INTERVAL_SECONDS", "300")),
            callback_timeout_seconds=float(os.getenv("RISK_CALLBACK_TIMEOUT_SECONDS", "5")),
            max_observer_threads=int(os.getenv("RISK_MAX_OBSERVER_THREADS", "4")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_interval_seconds": self.check_interval_seconds,
            "trend_stable_band_pct": self.trend_stable_band_pct,
            "callback_timeout_seconds": self.callback_timeout_seconds,
            "max_observer_threads": self.max_observer_threads,
            "record_history": self.record_history,
        }


# ============================================================
# DEFAULT RISK CATALOG
# ============================================================


def get_default_risk_catalog() -> List[RiskMetric]:
    """
    Build a fresh copy of the default rollout risk catalog.

    A new list of new RiskMetric objects is returned on every
    call so monitors never share mutable metric state.
    """
    return [
        # Storage
        RiskMetric(
            id="storage_quota_usage",
            category=RiskCategory.STORAGE,
            severity=RiskSeverityLabel.HIGH,
            name="Storage Quota Usage",
            description="Share of the storage quota in use",
            current_value=75.0,
            threshold_warning=70.0,
            threshold_critical=80.0,
            unit="%",
            direction=ThresholdDirection.INCREASING_IS_WORSE,
            mitigation_actions=[
                "Enable automatic compression of old videos",
                "Schedule cleanup of temporary files",
                "Consider upgrading the storage plan",
                "Introduce data retention policies",
            ],
        ),
        RiskMetric(
            id="storage_growth_rate",
            category=RiskCategory.STORAGE,
            severity=RiskSeverityLabel.MEDIUM,
            name="Storage Growth Rate",
            description="Speed at which stored data grows",
            current_value=2.5,
            threshold_warning=3.0,
            threshold_critical=5.0,
            unit="GB/month",
            direction=ThresholdDirection.INCREASING_IS_WORSE,
            mitigation_actions=[
                "Improve video compression",
                "Introduce cleanup policies",
                "Monitor large file uploads",
                "Educate users on upload best practices",
            ],
        ),
        # Performance
        RiskMetric(
            id="upload_success_rate_decline",
            category=RiskCategory.PERFORMANCE,
            severity=RiskSeverityLabel.CRITICAL,
            name="Upload Success Rate Decline",
            description="Share of uploads completing successfully",
            current_value=92.0,
            threshold_warning=95.0,
            threshold_critical=90.0,
            unit="%",
            direction=ThresholdDirection.DECREASING_IS_WORSE,
            mitigation_actions=[
                "Investigate causes of upload failures",
                "Improve network error handling",
                "Add automatic upload retry",
                "Optimize upload infrastructure",
            ],
        ),
        RiskMetric(
            id="average_upload_time_increase",
            category=RiskCategory.PERFORMANCE,
            severity=RiskSeverityLabel.MEDIUM,
            name="Average Upload Time Increase",
            description="Mean duration of successful uploads",
            current_value=85.0,
            threshold_warning=90.0,
            threshold_critical=120.0,
            unit="s",
            direction=ThresholdDirection.INCREASING_IS_WORSE,
            mitigation_actions=[
                "Optimize compression algorithms",
                "Upload chunks in parallel",
                "Improve network infrastructure",
                "Use caching and a CDN",
            ],
        ),
        # Adoption
        RiskMetric(
            id="user_adoption_rate",
            category=RiskCategory.ADOPTION,
            severity=RiskSeverityLabel.MEDIUM,
            name="User Adoption Rate",
            description="Share of admins using direct upload",
            current_value=65.0,
            threshold_warning=60.0,
            threshold_critical=40.0,
            unit="%",
            direction=ThresholdDirection.DECREASING_IS_WORSE,
            mitigation_actions=[
                "Provide additional user training",
                "Improve the upload user experience",
                "Run adoption campaigns",
                "Publish documentation and tutorials",
            ],
        ),
        # Cost
        RiskMetric(
            id="storage_cost_projection",
            category=RiskCategory.COST,
            severity=RiskSeverityLabel.MEDIUM,
            name="Storage Cost Projection",
            description="Projected storage cost based on current growth",
            current_value=25.0,
            threshold_warning=30.0,
            threshold_critical=40.0,
            unit="USD/month",
            direction=ThresholdDirection.INCREASING_IS_WORSE,
            mitigation_actions=[
                "Introduce retention policies",
                "Optimize compression",
                "Consider storage tiers",
                "Track project ROI",
            ],
        ),
        # Technical debt
        RiskMetric(
            id="error_accumulation",
            category=RiskCategory.TECHNICAL_DEBT,
            severity=RiskSeverityLabel.LOW,
            name="Error Accumulation",
            description="Unresolved upload errors per week",
            current_value=5.0,
            threshold_warning=10.0,
            threshold_critical=20.0,
            unit="errors/week",
            direction=ThresholdDirection.INCREASING_IS_WORSE,
            mitigation_actions=[
                "Automatically resolve common errors",
                "Improve logging and debugging",
                "Hold a weekly error review",
                "Invest in automated tests",
            ],
        ),
    ]


def get_default_config() -> RiskMonitorConfig:
    """Get default monitor configuration."""
    return RiskMonitorConfig()
