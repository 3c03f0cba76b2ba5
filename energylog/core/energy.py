"""Energy Arbitration - Pure functions choosing the day's energy source.

All functions are pure: same input always produces same output, no side effects.
A sample is either wholly external or wholly calculated, never a blend.
"""

from datetime import date
from typing import Optional

from .models import CalorieBalance, EnergySample, EnergySource, FeedReading, UserProfile
from .targets import calculate_profile_bmr


# Active energy estimated as this share of resting energy without feed data
FALLBACK_ACTIVE_RATIO = 0.2

# Resting energy assumed when there is neither feed data nor a profile
DEFAULT_RESTING_ENERGY = 1800.0


def is_usable_reading(reading: Optional[FeedReading]) -> bool:
    """A reading is authoritative only if it reports non-zero resting energy."""
    return reading is not None and reading.resting_energy > 0


def external_sample(log_date: date, reading: FeedReading) -> EnergySample:
    """Take every number from the feed reading."""
    return EnergySample(
        log_date=log_date,
        resting_energy=reading.resting_energy,
        active_energy=reading.active_energy,
        weight=reading.weight,
        source=EnergySource.EXTERNAL,
    )


def calculated_sample(
    log_date: date,
    profile: Optional[UserProfile],
    active_ratio: float = FALLBACK_ACTIVE_RATIO,
) -> EnergySample:
    """Estimate the day from the profile's BMR.

    Args:
        log_date: Day the sample describes
        profile: Body metrics, or None when no profile exists yet
        active_ratio: Active energy as a share of resting energy

    Returns:
        EnergySample tagged as calculated
    """
    if profile is None:
        resting = DEFAULT_RESTING_ENERGY
        weight = None
    else:
        resting = calculate_profile_bmr(profile)
        weight = profile.weight

    return EnergySample(
        log_date=log_date,
        resting_energy=resting,
        active_energy=resting * active_ratio,
        weight=weight,
        source=EnergySource.CALCULATED,
    )


def choose_sample(
    log_date: date,
    profile: Optional[UserProfile],
    reading: Optional[FeedReading],
    active_ratio: float = FALLBACK_ACTIVE_RATIO,
) -> EnergySample:
    """Use the feed reading wholesale if usable, otherwise the calculation."""
    if is_usable_reading(reading):
        return external_sample(log_date, reading)
    return calculated_sample(log_date, profile, active_ratio)


def calculate_balance(log_date: date, calories_consumed: float, sample: EnergySample) -> CalorieBalance:
    """Compose the day's balance from intake and an energy sample.

    Args:
        log_date: Day of the balance
        calories_consumed: Total calories eaten that day
        sample: Energy sample for the same day

    Returns:
        CalorieBalance where balance = consumed - (resting + active)
    """
    total = sample.resting_energy + sample.active_energy
    return CalorieBalance(
        log_date=log_date,
        calories_consumed=calories_consumed,
        resting_energy_burned=sample.resting_energy,
        active_energy_burned=sample.active_energy,
        total_energy_expended=total,
        balance=calories_consumed - total,
        is_from_external_feed=sample.is_external,
    )
