"""History - Pure functions summarizing a range of days against the goal.

All functions are pure: same input always produces same output, no side effects.
"""

from datetime import date, timedelta
from typing import Optional

from .errors import ValidationError
from .models import (
    CalorieBalance,
    DailyNutrition,
    DayHistory,
    Goal,
    HistoryReport,
    ProgressStatus,
)
from .targets import daily_calorie_adjustment


MAX_HISTORY_DAYS = 31

# Share of the target balance still counted as on track
PROGRESS_TOLERANCE = 0.1


def check_range(start: date, end: date, today: date) -> tuple[date, date]:
    """Validate a history range and clamp its end to today.

    Returns:
        (start, end) with end no later than today

    Raises:
        ValidationError: Reversed range, start in the future, or too many days
    """
    if end < start:
        raise ValidationError("end_date", "End date must not be before start date")
    if start > today:
        raise ValidationError("start_date", "Start date cannot be in the future")
    end = min(end, today)
    if (end - start).days + 1 > MAX_HISTORY_DAYS:
        raise ValidationError("end_date", f"History is limited to {MAX_HISTORY_DAYS} days")
    return start, end


def date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def summarize_day(nutrition: DailyNutrition, balance: CalorieBalance) -> DayHistory:
    return DayHistory(
        log_date=nutrition.log_date,
        total_calories=nutrition.total_calories,
        total_protein=round(nutrition.total_protein, 1),
        exercise_calories_burned=nutrition.exercise_calories_burned,
        net_calories=nutrition.net_calories,
        calorie_target=nutrition.calorie_target,
        entry_count=len(nutrition.entries),
        balance=round(balance.balance, 1),
        is_from_external_feed=balance.is_from_external_feed,
    )


def target_balance(goal: Goal, days: int) -> float:
    """Balance the goal's weekly rate calls for over ``days`` days."""
    return daily_calorie_adjustment(goal.weekly_weight_change) * days


def assess_progress(actual: float, target: float) -> tuple[ProgressStatus, str]:
    """Compare an actual balance with the target one.

    Within 10% of the target counts as on track. A negative target is a
    loss goal, where a smaller deficit is behind; otherwise a smaller
    surplus is behind.

    Returns:
        Tuple of (status, human readable details)
    """
    difference = abs(actual - target)
    if difference <= abs(target) * PROGRESS_TOLERANCE:
        return ProgressStatus.ON_TRACK, "You're doing great. Keep it up!"

    if target < 0:
        behind = actual > target
        need = "deficit"
    else:
        behind = actual < target
        need = "surplus"

    if behind:
        return ProgressStatus.BEHIND, f"Need {int(difference)} more calorie {need}"
    return ProgressStatus.AHEAD, f"You're {int(difference)} calories ahead!"


def build_history(
    start: date,
    end: date,
    days: list[DayHistory],
    goal: Optional[Goal] = None,
) -> HistoryReport:
    """Aggregate per-day history into a report.

    Args:
        start: First day of the range
        end: Last day of the range
        days: One DayHistory per day in the range, any order
        goal: Active goal to measure progress against, if any

    Returns:
        HistoryReport whose totals count only days with entries
    """
    days = sorted(days, key=lambda d: d.log_date)
    logged = [d for d in days if d.entry_count > 0]
    days_logged = len(logged)

    total_calories = sum(d.total_calories for d in logged)
    total_balance = round(sum(d.balance for d in logged), 1)
    avg_daily_calories = total_calories / days_logged if days_logged > 0 else 0

    target = None
    progress = None
    details = None
    if goal is not None and days_logged > 0:
        target = round(target_balance(goal, days_logged), 1)
        progress, details = assess_progress(total_balance, target)

    return HistoryReport(
        start_date=start,
        end_date=end,
        days=days,
        days_logged=days_logged,
        total_calories=total_calories,
        avg_daily_calories=round(avg_daily_calories, 1),
        total_protein=round(sum(d.total_protein for d in logged), 1),
        total_balance=total_balance,
        target_balance=target,
        progress=progress,
        progress_details=details,
    )
