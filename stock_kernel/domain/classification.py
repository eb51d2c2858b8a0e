"""
Expiration classification -- pure state machine.

Responsibility:
    Maps a lot's expiration date and "today" to a Classification.  No I/O,
    no clock access: the caller supplies today's date.

Rules (bounds inclusive):
    days_until_expiration < 0                    -> EXPIRED
    0 <= days <= critical_days                   -> CRITICAL
    critical_days < days <= near_expiry_days     -> NEAR_EXPIRY
    days > near_expiry_days, or no expiration    -> NORMAL
"""

from dataclasses import dataclass
from datetime import date

from stock_kernel.domain.types import Classification

DEFAULT_CRITICAL_DAYS = 7
DEFAULT_NEAR_EXPIRY_DAYS = 30


@dataclass(frozen=True)
class ExpiryWindows:
    """Day bounds used by classify(); both inclusive upper bounds."""

    critical_days: int = DEFAULT_CRITICAL_DAYS
    near_expiry_days: int = DEFAULT_NEAR_EXPIRY_DAYS

    def __post_init__(self) -> None:
        if self.critical_days < 0:
            raise ValueError("critical_days cannot be negative")
        if self.near_expiry_days < self.critical_days:
            raise ValueError("near_expiry_days must be >= critical_days")


DEFAULT_WINDOWS = ExpiryWindows()


def days_until_expiration(expiration_date: date | None, today: date) -> int | None:
    """Whole days from today to the expiration date; None when no date."""
    if expiration_date is None:
        return None
    return (expiration_date - today).days


def classify(
    expiration_date: date | None,
    today: date,
    windows: ExpiryWindows = DEFAULT_WINDOWS,
) -> Classification:
    days = days_until_expiration(expiration_date, today)
    if days is None:
        return Classification.NORMAL
    if days < 0:
        return Classification.EXPIRED
    if days <= windows.critical_days:
        return Classification.CRITICAL
    if days <= windows.near_expiry_days:
        return Classification.NEAR_EXPIRY
    return Classification.NORMAL


def is_expired(
    expiration_date: date | None,
    classification: Classification,
    today: date,
) -> bool:
    """True when the stored label says EXPIRED or the date has already passed.

    Allocation eligibility uses this so a lot past its date is excluded even
    before the classification sweep has relabelled it.
    """
    if classification == Classification.EXPIRED:
        return True
    return expiration_date is not None and expiration_date < today


def is_alerting(classification: Classification) -> bool:
    """Classifications that warrant an expiring-soon alert."""
    return classification in (Classification.CRITICAL, Classification.NEAR_EXPIRY)
