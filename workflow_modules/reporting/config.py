"""
Reporting Configuration Schema.

Delay threshold, default reporting window, time-series bucketing limits
and the month-name tables used for monthly bucket labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


MONTH_NAMES: dict[str, tuple[str, ...]] = {
    "en": (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
    "ar": (
        "يناير", "فبراير", "مارس", "أبريل", "مايو", "يونيو",
        "يوليو", "أغسطس", "سبتمبر", "أكتوبر", "نوفمبر", "ديسمبر",
    ),
}


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Bucket granularity is picked from the window length: up to
    ``daily_max_days`` days gives daily buckets, up to ``monthly_max_days``
    gives monthly buckets, anything longer is bucketed by year.
    """

    # A pending application is delayed when its last activity is older
    # than this many days.
    delayed_threshold_days: int = 5

    # Trailing window used when a report is asked for without dates.
    default_window_months: int = 12

    # Month-name table for monthly labels ("en" or "ar").
    month_label_locale: str = "en"

    daily_max_days: int = 31
    monthly_max_days: int = 366

    # Decimal places kept on averaged durations.
    rounding_places: int = 2

    def __post_init__(self):
        if self.delayed_threshold_days < 0:
            raise ValueError("delayed_threshold_days cannot be negative")
        if self.default_window_months < 1:
            raise ValueError("default_window_months must be at least 1")
        if self.month_label_locale not in MONTH_NAMES:
            raise ValueError(
                f"month_label_locale must be one of {sorted(MONTH_NAMES)}"
            )
        if self.daily_max_days < 1:
            raise ValueError("daily_max_days must be at least 1")
        if self.monthly_max_days < self.daily_max_days:
            raise ValueError("monthly_max_days cannot be smaller than daily_max_days")
        if self.rounding_places < 0:
            raise ValueError("rounding_places cannot be negative")

    @property
    def month_names(self) -> tuple[str, ...]:
        return MONTH_NAMES[self.month_label_locale]

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (the ``reporting`` settings block)."""
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
