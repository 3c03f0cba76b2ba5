"""Core Data Models - Pydantic models for type safety.

Value objects with validation only. Calculations live in targets, nutrition
and energy; the models never reach out to storage or the health feed.

Optional nutrient fields use None for "not recorded", which is distinct from
a recorded 0. Totals treat an unrecorded nutrient as contributing nothing.
"""

from datetime import datetime, timezone
from datetime import date as DateType
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
import uuid


def utcnow() -> datetime:
    """Timezone-aware current time used for record timestamps."""
    return datetime.now(timezone.utc)


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(str, Enum):
    """Activity level with its fixed daily-energy multiplier."""

    SEDENTARY = "sedentary"
    LIGHTLY_ACTIVE = "lightly_active"
    MODERATELY_ACTIVE = "moderately_active"
    VERY_ACTIVE = "very_active"
    EXTREMELY_ACTIVE = "extremely_active"

    @property
    def multiplier(self) -> float:
        return ACTIVITY_MULTIPLIERS[self]


ACTIVITY_MULTIPLIERS = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHTLY_ACTIVE: 1.375,
    ActivityLevel.MODERATELY_ACTIVE: 1.55,
    ActivityLevel.VERY_ACTIVE: 1.725,
    ActivityLevel.EXTREMELY_ACTIVE: 1.9,
}


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class GoalType(str, Enum):
    LOSE_WEIGHT = "lose_weight"
    MAINTAIN_WEIGHT = "maintain_weight"
    GAIN_WEIGHT = "gain_weight"
    GAIN_MUSCLE = "gain_muscle"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class EnergySource(str, Enum):
    """Where the energy numbers of a sample came from."""

    EXTERNAL = "external"
    CALCULATED = "calculated"


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UserProfile(BaseModel):
    """Body metrics used to derive energy needs. Weight in kg, height in cm."""

    age: int = Field(gt=0, lt=150, description="Age in years")
    weight: float = Field(gt=0, lt=1000, description="Body weight in kg")
    height: float = Field(gt=0, lt=300, description="Height in cm")
    sex: Sex
    activity_level: ActivityLevel
    preferred_units: UnitSystem = UnitSystem.METRIC
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Goal(BaseModel):
    """A weight-change goal and the daily targets derived from it.

    Safety bounds on the weekly rate depend on the goal type, so they are
    checked by the target calculator rather than here.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    goal_type: GoalType
    target_weight: Optional[float] = Field(default=None, description="Target weight in kg")
    target_date: Optional[DateType] = None
    weekly_weight_change: float = Field(default=0.0, description="kg/week, negative for loss")
    daily_calorie_target: float = Field(default=0.0, ge=0)
    daily_protein_target: float = Field(default=0.0, ge=0)
    daily_water_target: float = Field(default=2000.0, ge=0, description="Water target in ml")
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class NutritionTargets(BaseModel):
    """Output of the target calculator."""

    model_config = ConfigDict(frozen=True)

    bmr: float
    daily_energy_need: float
    calorie_target: float
    protein_target: float
    water_target: float


class FoodEntry(BaseModel):
    """A single logged food item."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    calories: float = Field(ge=0, le=10000)
    protein: Optional[float] = Field(default=None, ge=0, le=1000, description="grams")
    carbs: Optional[float] = Field(default=None, ge=0, le=1000, description="grams")
    fats: Optional[float] = Field(default=None, ge=0, le=500, description="grams")
    saturated_fats: Optional[float] = Field(default=None, ge=0, le=500, description="grams")
    timestamp: datetime = Field(default_factory=utcnow)
    meal_type: Optional[MealType] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("saturated_fats")
    @classmethod
    def _saturated_within_total(cls, value: Optional[float], info: ValidationInfo) -> Optional[float]:
        fats = info.data.get("fats")
        if value is not None and fats is not None and value > fats:
            raise ValueError("saturated fats cannot exceed total fats")
        return value


class DailyNutrition(BaseModel):
    """One calendar day of food entries plus cached totals.

    The totals are a cache over ``entries``; only the nutrition aggregator
    writes them, always by refolding the full entry list.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    log_date: DateType
    entries: list[FoodEntry] = Field(default_factory=list)
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fats: float = 0.0
    total_saturated_fats: float = 0.0
    net_calories: float = 0.0
    water_consumed: float = Field(default=0.0, ge=0, description="ml")
    exercise_calories_burned: float = Field(default=0.0, ge=0)
    calorie_target: float = Field(default=2000.0, ge=0)
    protein_target: float = Field(default=100.0, ge=0)
    water_target: float = Field(default=2000.0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DailyNutritionSummary(BaseModel):
    """Read-only digest of a day for display."""

    log_date: DateType
    total_calories: float
    total_protein: float
    calorie_target: float
    protein_target: float
    calories_remaining: float = Field(description="Negative if over target")
    protein_remaining: float = Field(description="Negative if over target")
    exercise_calories_burned: float
    net_calories: float
    water_consumed: float
    entry_count: int
    calorie_progress: float = Field(description="May exceed 1.0")
    protein_progress: float = Field(description="May exceed 1.0")
    calorie_target_met: bool = False
    protein_target_met: bool = False


class FeedReading(BaseModel):
    """Raw numbers returned by the external health feed for one day."""

    model_config = ConfigDict(frozen=True)

    resting_energy: float = Field(ge=0)
    active_energy: float = Field(ge=0)
    weight: Optional[float] = None


class EnergySample(BaseModel):
    """Authoritative energy figures for one day, all from a single source."""

    model_config = ConfigDict(frozen=True)

    log_date: DateType
    resting_energy: float
    active_energy: float
    weight: Optional[float] = None
    source: EnergySource

    @property
    def is_external(self) -> bool:
        return self.source is EnergySource.EXTERNAL


class CalorieBalance(BaseModel):
    """Consumed minus expended energy for one day. Negative means deficit."""

    model_config = ConfigDict(frozen=True)

    log_date: DateType
    calories_consumed: float
    resting_energy_burned: float
    active_energy_burned: float
    total_energy_expended: float
    balance: float
    is_from_external_feed: bool

    @property
    def description(self) -> str:
        if self.balance > 0:
            return "Caloric Surplus"
        if self.balance < 0:
            return "Caloric Deficit"
        return "Balanced"


class SyncStatus(BaseModel):
    """Transient state of the background sync."""

    model_config = ConfigDict(frozen=True)

    state: SyncState
    timestamp: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "SyncStatus":
        return cls(state=SyncState.IDLE)

    @classmethod
    def syncing(cls) -> "SyncStatus":
        return cls(state=SyncState.SYNCING)

    @classmethod
    def succeeded(cls, timestamp: datetime) -> "SyncStatus":
        return cls(state=SyncState.SUCCEEDED, timestamp=timestamp)

    @classmethod
    def failed(cls, error: str) -> "SyncStatus":
        return cls(state=SyncState.FAILED, timestamp=utcnow(), error=error)


class WorkoutRecord(BaseModel):
    """A workout reported by the health feed."""

    workout_type: str
    start: datetime
    end: datetime
    total_energy_burned: Optional[float] = Field(default=None, ge=0, description="kcal")
    distance: Optional[float] = Field(default=None, ge=0, description="meters")
    source: str = "health feed"

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class CachedMeal(BaseModel):
    """A recently logged meal kept for quick re-logging. Names are unique, ignoring case."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(min_length=1, max_length=500, description="Name of the meal (used for searching)")
    calories: float = Field(ge=0, le=10000)
    protein: Optional[float] = Field(default=None, ge=0, le=1000, description="grams")
    use_count: int = Field(default=0, ge=0, description="Times this meal has been re-logged")
    last_used: datetime = Field(default_factory=utcnow)


class ProgressStatus(str, Enum):
    ON_TRACK = "on_track"
    BEHIND = "behind"
    AHEAD = "ahead"


class DayHistory(BaseModel):
    """One day of a history range."""

    log_date: DateType
    total_calories: float
    total_protein: float
    exercise_calories_burned: float
    net_calories: float
    calorie_target: float
    entry_count: int
    balance: float = Field(description="Consumed minus expended; negative is a deficit")
    is_from_external_feed: bool


class HistoryReport(BaseModel):
    """Totals and goal progress over a range of days.

    Aggregates cover only days with at least one entry, so an unlogged day
    does not read as a full-day deficit.
    """

    start_date: DateType
    end_date: DateType
    days: list[DayHistory]
    days_logged: int
    total_calories: float
    avg_daily_calories: float
    total_protein: float
    total_balance: float
    target_balance: Optional[float] = Field(default=None, description="None without an active goal")
    progress: Optional[ProgressStatus] = None
    progress_details: Optional[str] = None

    @property
    def dates_with_entries(self) -> list[DateType]:
        return [d.log_date for d in self.days if d.entry_count > 0]
