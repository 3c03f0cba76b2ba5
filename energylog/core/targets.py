"""Target Calculator - Pure functions deriving daily targets from body metrics.

All functions are pure: same input always produces same output, no side effects.
Weights are kilograms, heights centimeters, energy kilocalories.
"""

from datetime import date, timedelta
from typing import Optional

from .errors import (
    InvalidBodyMetric,
    InvalidTargetDate,
    InvalidTargetWeight,
    UnsafeWeightChangeRate,
)
from .models import ActivityLevel, Goal, GoalType, NutritionTargets, Sex, UserProfile, utcnow


# 1 kg of body mass is roughly 7700 kcal
KCAL_PER_KG = 7700.0

MIN_LOSE_WEIGHT_CALORIES = 1200.0

# Flat surplus for muscle gain, applied instead of the weekly-rate adjustment
MUSCLE_GAIN_SURPLUS = 300.0

DEFAULT_WATER_TARGET_ML = 2000.0

# Target within this distance of current weight counts as maintenance
MAINTAIN_TOLERANCE_KG = 0.5

# Grams of protein per kg of body weight
PROTEIN_FACTORS = {
    GoalType.LOSE_WEIGHT: 1.6,
    GoalType.MAINTAIN_WEIGHT: 0.8,
    GoalType.GAIN_WEIGHT: 1.4,
    GoalType.GAIN_MUSCLE: 2.2,
}

# Inclusive kg/week safety bounds
WEEKLY_RATE_BOUNDS = {
    GoalType.LOSE_WEIGHT: (-1.0, 0.0),
    GoalType.MAINTAIN_WEIGHT: (-0.1, 0.1),
    GoalType.GAIN_WEIGHT: (0.0, 0.5),
    GoalType.GAIN_MUSCLE: (0.0, 0.5),
}

RECOMMENDED_RATE_RANGES = {
    GoalType.LOSE_WEIGHT: (-1.0, -0.25),
    GoalType.MAINTAIN_WEIGHT: (-0.1, 0.1),
    GoalType.GAIN_WEIGHT: (0.25, 0.5),
    GoalType.GAIN_MUSCLE: (0.1, 0.3),
}


# ==================== Body Metrics ====================


def validate_weight(weight: float) -> None:
    """Raise InvalidBodyMetric unless weight is in (0, 1000) kg."""
    if not 0 < weight < 1000:
        raise InvalidBodyMetric("weight", "Weight must be between 1 and 999 kg")


def validate_body_metrics(age: int, weight: float, height: float) -> None:
    """Check the inputs of the resting-energy formula.

    Raises:
        InvalidBodyMetric: If age is not in (0, 150), weight not in (0, 1000)
            or height not in (0, 300)
    """
    if not 0 < age < 150:
        raise InvalidBodyMetric("age", "Age must be between 1 and 149 years")
    validate_weight(weight)
    if not 0 < height < 300:
        raise InvalidBodyMetric("height", "Height must be between 1 and 299 cm")


def calculate_bmr(age: int, weight: float, height: float, sex: Sex) -> float:
    """Calculate resting energy using the Mifflin-St Jeor equation.

    The "other" case is the arithmetic mean of the male and female results.

    Args:
        age: Age in years
        weight: Weight in kg
        height: Height in cm
        sex: Sex used to pick the formula constant

    Returns:
        Resting energy in kcal/day
    """
    validate_body_metrics(age, weight, height)

    base = 10 * weight + 6.25 * height - 5 * age
    male = base + 5
    female = base - 161

    if sex is Sex.MALE:
        return male
    if sex is Sex.FEMALE:
        return female
    return (male + female) / 2


def calculate_profile_bmr(profile: UserProfile) -> float:
    """Resting energy for a stored profile."""
    return calculate_bmr(profile.age, profile.weight, profile.height, profile.sex)


# ==================== Energy Need & Targets ====================


def calculate_daily_energy_need(
    bmr: float,
    activity_level: ActivityLevel,
    total_energy_expended: Optional[float] = None,
) -> float:
    """Daily energy need, preferring a measured total over the formula.

    Args:
        bmr: Resting energy in kcal/day
        activity_level: Activity level providing the multiplier
        total_energy_expended: Measured total daily expenditure, if any

    Returns:
        The measured value when it is positive, else bmr x multiplier
    """
    if total_energy_expended is not None and total_energy_expended > 0:
        return total_energy_expended
    return bmr * activity_level.multiplier


def daily_calorie_adjustment(weekly_rate: float) -> float:
    """kcal/day needed to move weight by ``weekly_rate`` kg per week."""
    return weekly_rate * KCAL_PER_KG / 7


def calculate_calorie_target(
    daily_need: float,
    goal_type: GoalType,
    weekly_rate: float,
    *,
    min_lose_calories: float = MIN_LOSE_WEIGHT_CALORIES,
    muscle_gain_surplus: float = MUSCLE_GAIN_SURPLUS,
) -> float:
    """Calculate the daily calorie target for a goal.

    Args:
        daily_need: Daily energy need in kcal
        goal_type: Type of goal
        weekly_rate: Weekly weight change in kg (negative for loss)
        min_lose_calories: Floor applied to weight-loss targets
        muscle_gain_surplus: Flat surplus for muscle gain

    Returns:
        Daily calorie target in kcal
    """
    if goal_type is GoalType.MAINTAIN_WEIGHT:
        return daily_need
    if goal_type is GoalType.GAIN_MUSCLE:
        return daily_need + muscle_gain_surplus

    target = daily_need + daily_calorie_adjustment(weekly_rate)
    if goal_type is GoalType.LOSE_WEIGHT:
        return max(target, min_lose_calories)
    return target


def calculate_protein_target(weight: float, goal_type: GoalType) -> float:
    """Protein target in grams: body weight times the goal's fixed factor."""
    return weight * PROTEIN_FACTORS[goal_type]


def validate_goal(
    goal_type: GoalType,
    weekly_rate: float,
    target_weight: Optional[float] = None,
    target_date: Optional[date] = None,
    today: Optional[date] = None,
) -> None:
    """Reject goal parameters outside the safety bounds.

    Raises:
        UnsafeWeightChangeRate: Weekly rate outside the bounds for the type
        InvalidTargetWeight: Target weight not in (0, 1000)
        InvalidTargetDate: Target date not strictly after today
    """
    low, high = WEEKLY_RATE_BOUNDS[goal_type]
    if not low <= weekly_rate <= high:
        raise UnsafeWeightChangeRate(
            f"Weekly change of {weekly_rate:+.2f} kg is outside the safe range "
            f"{low:+.2f}..{high:+.2f} kg for {goal_type.value}"
        )

    if target_weight is not None and not 0 < target_weight < 1000:
        raise InvalidTargetWeight("Target weight must be between 1 and 999 kg")

    if target_date is not None:
        if today is None:
            today = date.today()
        if target_date <= today:
            raise InvalidTargetDate("Target date must be in the future")


def calculate_targets(
    profile: UserProfile,
    goal_type: GoalType,
    weekly_rate: float,
    *,
    total_energy_expended: Optional[float] = None,
    water_target: float = DEFAULT_WATER_TARGET_ML,
) -> NutritionTargets:
    """Derive all daily targets for a profile and goal parameters.

    Args:
        profile: User's body metrics
        goal_type: Type of goal
        weekly_rate: Weekly weight change in kg
        total_energy_expended: Measured total daily expenditure, if any
        water_target: Daily water target in ml

    Returns:
        NutritionTargets with BMR, energy need and targets
    """
    bmr = calculate_profile_bmr(profile)
    need = calculate_daily_energy_need(bmr, profile.activity_level, total_energy_expended)

    return NutritionTargets(
        bmr=bmr,
        daily_energy_need=need,
        calorie_target=calculate_calorie_target(need, goal_type, weekly_rate),
        protein_target=calculate_protein_target(profile.weight, goal_type),
        water_target=water_target,
    )


def apply_targets(
    goal: Goal,
    profile: UserProfile,
    total_energy_expended: Optional[float] = None,
) -> Goal:
    """Return a copy of ``goal`` with freshly derived daily targets."""
    targets = calculate_targets(
        profile,
        goal.goal_type,
        goal.weekly_weight_change,
        total_energy_expended=total_energy_expended,
        water_target=goal.daily_water_target,
    )
    return goal.model_copy(update={
        "daily_calorie_target": targets.calorie_target,
        "daily_protein_target": targets.protein_target,
        "updated_at": utcnow(),
    })


# ==================== Goal Planning ====================


def infer_goal_type(current_weight: float, target_weight: float) -> GoalType:
    """Pick lose/maintain/gain from the direction of the weight difference."""
    difference = target_weight - current_weight
    if abs(difference) <= MAINTAIN_TOLERANCE_KG:
        return GoalType.MAINTAIN_WEIGHT
    if difference < 0:
        return GoalType.LOSE_WEIGHT
    return GoalType.GAIN_WEIGHT


def weekly_change_for_target(
    current_weight: float,
    target_weight: float,
    target_date: date,
    today: date,
) -> float:
    """Weekly rate needed to reach ``target_weight`` by ``target_date``.

    Returns 0 for maintenance-sized differences and for dates not in the future.
    """
    if infer_goal_type(current_weight, target_weight) is GoalType.MAINTAIN_WEIGHT:
        return 0.0
    weeks = (target_date - today).days / 7
    if weeks <= 0:
        return 0.0
    return (target_weight - current_weight) / weeks


def estimated_days_to_goal(goal: Goal, current_weight: float) -> Optional[int]:
    """Days needed to reach the target at the goal's weekly rate."""
    if goal.target_weight is None or goal.weekly_weight_change == 0:
        return None
    weeks = abs(goal.target_weight - current_weight) / abs(goal.weekly_weight_change)
    return int(timedelta(weeks=weeks).total_seconds() // 86400)


# ==================== Unit Conversions ====================


def pounds_to_kilograms(pounds: float) -> float:
    return pounds * 0.453592


def inches_to_centimeters(inches: float) -> float:
    return inches * 2.54


def feet_and_inches_to_centimeters(feet: int, inches: float) -> float:
    return inches_to_centimeters(feet * 12 + inches)
