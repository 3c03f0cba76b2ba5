"""MCP Server - Tool definitions for Claude integration.

Defines the MCP tools for profile and goal setup, food logging and the
energy balance. Every tool returns a dictionary; expected failures become
{"error": message} instead of an exception.
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Optional, TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from ..core.errors import EnergyLogError, ExternalFeedFailure, ValidationError
from ..core.models import (
    ActivityLevel,
    CalorieBalance,
    CachedMeal,
    DailyNutrition,
    FoodEntry,
    Goal,
    GoalType,
    MealType,
    Sex,
    UnitSystem,
    UserProfile,
    utcnow,
)
from ..core.nutrition import (
    calories_by_meal_type,
    check_entry,
    new_food_entry,
    protein_by_meal_type,
    summarize,
)
from ..core.targets import (
    RECOMMENDED_RATE_RANGES,
    calculate_daily_energy_need,
    calculate_profile_bmr,
    estimated_days_to_goal,
    inches_to_centimeters,
    pounds_to_kilograms,
    validate_body_metrics,
)
from .config import Settings
from .services import AppServices, build_services


logger = logging.getLogger(__name__)

# Configure transport security for Cloud Run deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
    ],
)

# Initialize FastMCP server with stateless HTTP for cloud deployments
mcp = FastMCP(
    "energylog",
    instructions="""EnergyLog - Daily energy balance and nutrition targets.

Use these tools to track food intake against goal-derived targets and to see
calories consumed versus calories burned.

On first use, call setup_profile, then create_goal.
To log a meal eaten before, call search_cache and then log_cached_meal.
Use get_history for a range of days and progress against the goal.
While the user is adjusting a goal interactively, prefer edit_goal and
edit_weight: rapid edits are combined into a single save.
After logging food, always show the updated daily summary.""",
    stateless_http=True,
    transport_security=transport_security,
)

# Lazy-initialized services
_services: AppServices | None = None


def get_services() -> AppServices:
    """Get or create the application services."""
    global _services
    if _services is None:
        _services = build_services(Settings.from_env())
    return _services


def configure_services(services: AppServices | None) -> None:
    """Replace the application services (None rebuilds from the environment)."""
    global _services
    _services = services


# ==================== Helpers ====================

E = TypeVar("E", bound=Enum)


def _error(e: EnergyLogError) -> dict:
    return {"error": e.message}


def _parse_enum(enum_cls: type[E], value: str, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"{field} must be one of: {choices}") from None


def _parse_date(date_str: str | None, field: str = "date") -> Optional[date]:
    if date_str is None:
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise ValidationError(field, "Invalid date format. Use YYYY-MM-DD.") from None


def _day(services: AppServices, date_str: str | None) -> date:
    return _parse_date(date_str) or services.today()


def _profile_dict(profile: UserProfile) -> dict:
    bmr = calculate_profile_bmr(profile)
    return {
        "age": profile.age,
        "weight": profile.weight,
        "height": profile.height,
        "sex": profile.sex.value,
        "activity_level": profile.activity_level.value,
        "preferred_units": profile.preferred_units.value,
        "bmr": round(bmr),
        "daily_energy_need": round(calculate_daily_energy_need(bmr, profile.activity_level)),
    }


def _goal_dict(goal: Goal, current_weight: float | None = None) -> dict:
    data = {
        "id": goal.id,
        "goal_type": goal.goal_type.value,
        "target_weight": goal.target_weight,
        "target_date": goal.target_date.isoformat() if goal.target_date else None,
        "weekly_weight_change": goal.weekly_weight_change,
        "daily_calorie_target": round(goal.daily_calorie_target),
        "daily_protein_target": round(goal.daily_protein_target),
        "daily_water_target": goal.daily_water_target,
        "is_active": goal.is_active,
    }
    low, high = RECOMMENDED_RATE_RANGES[goal.goal_type]
    data["recommended_weekly_change"] = {"min": low, "max": high}
    if current_weight is not None:
        data["estimated_days_to_goal"] = estimated_days_to_goal(goal, current_weight)
    return data


def _entry_dict(entry: FoodEntry) -> dict:
    return {
        "id": entry.id,
        "calories": entry.calories,
        "protein": entry.protein,
        "carbs": entry.carbs,
        "fats": entry.fats,
        "saturated_fats": entry.saturated_fats,
        "meal_type": entry.meal_type.value if entry.meal_type else None,
        "notes": entry.notes,
        "timestamp": entry.timestamp.isoformat(),
    }


def _day_dict(nutrition: DailyNutrition) -> dict:
    return {
        "date": nutrition.log_date.isoformat(),
        "entries": [_entry_dict(e) for e in nutrition.entries],
        "targets": {
            "calories": nutrition.calorie_target,
            "protein": nutrition.protein_target,
            "water": nutrition.water_target,
        },
        "by_meal": {
            "calories": {m.value: v for m, v in calories_by_meal_type(nutrition.entries).items()},
            "protein": {m.value: v for m, v in protein_by_meal_type(nutrition.entries).items()},
        },
        "summary": summarize(nutrition).model_dump(mode="json"),
    }


def _balance_dict(balance: CalorieBalance) -> dict:
    data = balance.model_dump(mode="json")
    data["description"] = balance.description
    return data


# ==================== Profile Tools ====================


@mcp.tool()
async def setup_profile(
    age: int,
    weight: float,
    height: float,
    sex: str,
    activity_level: str,
    preferred_units: str = "metric",
) -> dict:
    """Store the user's body metrics and re-derive any active goal.

    Args:
        age: Age in years
        weight: Body weight (kg, or lb when preferred_units is "imperial")
        height: Height (cm, or inches when preferred_units is "imperial")
        sex: "male", "female" or "other"
        activity_level: "sedentary", "lightly_active", "moderately_active",
            "very_active" or "extremely_active"
        preferred_units: "metric" or "imperial"

    Returns:
        The stored profile with BMR and daily energy need
    """
    services = get_services()
    try:
        units = _parse_enum(UnitSystem, preferred_units, "preferred_units")
        if units is UnitSystem.IMPERIAL:
            weight = pounds_to_kilograms(weight)
            height = inches_to_centimeters(height)
        validate_body_metrics(age, weight, height)

        existing = services.store.fetch_user()
        profile = UserProfile(
            age=age,
            weight=weight,
            height=height,
            sex=_parse_enum(Sex, sex, "sex"),
            activity_level=_parse_enum(ActivityLevel, activity_level, "activity_level"),
            preferred_units=units,
            created_at=existing.created_at if existing else utcnow(),
        )
        services.store.save_user(profile)
        goal = await services.goals.recalculate()
    except EnergyLogError as e:
        return _error(e)

    result = {"profile": _profile_dict(profile)}
    if goal is not None:
        result["goal"] = _goal_dict(goal, profile.weight)
    return result


@mcp.tool()
def get_profile() -> dict:
    """Retrieve the user's body metrics with BMR and daily energy need.

    Returns:
        Profile dictionary, or error message if not set up
    """
    try:
        profile = get_services().store.fetch_user()
    except EnergyLogError as e:
        return _error(e)

    if profile is None:
        return {"error": "No profile found. Please use setup_profile first."}
    return _profile_dict(profile)


# ==================== Goal Tools ====================


@mcp.tool()
async def create_goal(
    goal_type: str,
    weekly_weight_change: float = 0.0,
    target_weight: float | None = None,
    target_date: str | None = None,
    daily_water_target: float = 2000.0,
) -> dict:
    """Create a new active goal, replacing the current one.

    Args:
        goal_type: "lose_weight", "maintain_weight", "gain_weight" or "gain_muscle"
        weekly_weight_change: kg per week, negative for loss (e.g., -0.5)
        target_weight: Optional target weight in kg
        target_date: Optional date to reach the target, YYYY-MM-DD
        daily_water_target: Water target in ml

    Returns:
        The goal with its derived daily calorie and protein targets
    """
    services = get_services()
    try:
        goal = await services.goals.create_goal(
            _parse_enum(GoalType, goal_type, "goal_type"),
            weekly_weight_change=weekly_weight_change,
            target_weight=target_weight,
            target_date=_parse_date(target_date, "target_date"),
            daily_water_target=daily_water_target,
        )
        profile = services.store.fetch_user()
    except EnergyLogError as e:
        return _error(e)

    return _goal_dict(goal, profile.weight if profile else None)


def _goal_changes(
    goal_type: str | None,
    weekly_weight_change: float | None,
    target_weight: float | None,
    target_date: str | None,
    daily_water_target: float | None,
) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if goal_type is not None:
        changes["goal_type"] = _parse_enum(GoalType, goal_type, "goal_type")
    if weekly_weight_change is not None:
        changes["weekly_weight_change"] = weekly_weight_change
    if target_weight is not None:
        changes["target_weight"] = target_weight
    if target_date is not None:
        changes["target_date"] = _parse_date(target_date, "target_date")
    if daily_water_target is not None:
        changes["daily_water_target"] = daily_water_target
    return changes


@mcp.tool()
async def update_goal(
    goal_type: str | None = None,
    weekly_weight_change: float | None = None,
    target_weight: float | None = None,
    target_date: str | None = None,
    daily_water_target: float | None = None,
) -> dict:
    """Update the active goal immediately. Only provided fields are changed.

    Returns:
        The updated goal with re-derived targets
    """
    services = get_services()
    try:
        changes = _goal_changes(goal_type, weekly_weight_change, target_weight, target_date, daily_water_target)
        if not changes:
            return {"error": "No updates provided."}
        goal = await services.goals.update_goal(**changes)
        profile = services.store.fetch_user()
    except EnergyLogError as e:
        return _error(e)

    return _goal_dict(goal, profile.weight if profile else None)


@mcp.tool()
async def edit_goal(
    goal_type: str | None = None,
    weekly_weight_change: float | None = None,
    target_weight: float | None = None,
    target_date: str | None = None,
    daily_water_target: float | None = None,
) -> dict:
    """Queue a goal edit. Edits made in quick succession are saved together.

    Creates a goal if none is active. Use get_goal afterwards to see the
    saved result.

    Returns:
        The fields waiting to be saved and the delay before saving
    """
    services = get_services()
    try:
        changes = _goal_changes(goal_type, weekly_weight_change, target_weight, target_date, daily_water_target)
        if not changes:
            return {"error": "No updates provided."}
        services.debouncer.edit(**changes)
    except EnergyLogError as e:
        return _error(e)

    return {
        "scheduled": True,
        "pending_fields": sorted(services.debouncer.pending_changes),
        "save_after_seconds": services.settings.goal_debounce,
    }


@mcp.tool()
async def edit_weight(weight: float) -> dict:
    """Queue a body weight edit (kg). Rapid edits are saved once.

    Returns:
        Confirmation with the delay before saving
    """
    services = get_services()
    try:
        services.debouncer.edit_weight(weight)
    except EnergyLogError as e:
        return _error(e)

    return {
        "scheduled": True,
        "weight": weight,
        "save_after_seconds": services.settings.weight_debounce,
    }


@mcp.tool()
def reset_goal() -> dict:
    """Deactivate the current goal. Targets fall back to defaults.

    Returns:
        Confirmation with the deactivated goal's ID
    """
    try:
        goal = get_services().goals.reset_goal()
    except EnergyLogError as e:
        return _error(e)

    if goal is None:
        return {"error": "No active goal to reset."}
    return {"success": True, "deactivated_goal_id": goal.id}


@mcp.tool()
def get_goal() -> dict:
    """Get the active goal with its targets and the estimated days to reach it.

    Returns:
        Goal dictionary, or error message if none is active
    """
    services = get_services()
    try:
        goal = services.goals.get_goal()
        profile = services.store.fetch_user()
    except EnergyLogError as e:
        return _error(e)

    result: dict[str, Any] = {}
    if services.debouncer.pending:
        result["pending_fields"] = sorted(services.debouncer.pending_changes)
    if services.debouncer.last_error.value:
        result["last_edit_error"] = services.debouncer.last_error.value
    if goal is None:
        result["error"] = "No active goal found. Please use create_goal first."
        return result
    result.update(_goal_dict(goal, profile.weight if profile else None))
    return result


# ==================== Logging Tools ====================


@mcp.tool()
def log_food(
    calories: float,
    protein: float | None = None,
    carbs: float | None = None,
    fats: float | None = None,
    saturated_fats: float | None = None,
    meal_type: str | None = None,
    notes: str | None = None,
    date_str: str | None = None,
) -> dict:
    """Add a food entry. Omitted nutrients are recorded as unknown, not zero.

    Args:
        calories: Total calories for this serving
        protein: Protein in grams
        carbs: Carbohydrates in grams
        fats: Total fat in grams
        saturated_fats: Saturated fat in grams (at most fats)
        meal_type: "breakfast", "lunch", "dinner" or "snack"
        notes: Optional description, up to 500 characters
        date_str: Day to log to, YYYY-MM-DD (default today)

    Returns:
        The created entry with the updated daily summary
    """
    services = get_services()
    try:
        log_date = _day(services, date_str)
        entry = new_food_entry(
            calories=calories,
            protein=protein,
            carbs=carbs,
            fats=fats,
            saturated_fats=saturated_fats,
            meal_type=_parse_enum(MealType, meal_type, "meal_type") if meal_type else None,
            notes=notes,
        )
        nutrition = services.nutrition.add_entry(log_date, entry)
    except EnergyLogError as e:
        return _error(e)

    return {
        "entry": _entry_dict(entry),
        "daily_summary": summarize(nutrition).model_dump(mode="json"),
    }


@mcp.tool()
def update_food(
    entry_id: str,
    calories: float | None = None,
    protein: float | None = None,
    carbs: float | None = None,
    fats: float | None = None,
    saturated_fats: float | None = None,
    meal_type: str | None = None,
    notes: str | None = None,
    date_str: str | None = None,
) -> dict:
    """Update an existing food entry. Only provided fields are updated.

    Args:
        entry_id: The ID of the entry to update
        date_str: Day the entry was logged on, YYYY-MM-DD (default today)

    Returns:
        Updated entry and new daily summary
    """
    services = get_services()
    updates: dict[str, Any] = {}
    if calories is not None:
        updates["calories"] = calories
    if protein is not None:
        updates["protein"] = protein
    if carbs is not None:
        updates["carbs"] = carbs
    if fats is not None:
        updates["fats"] = fats
    if saturated_fats is not None:
        updates["saturated_fats"] = saturated_fats
    if notes is not None:
        updates["notes"] = notes

    try:
        if meal_type is not None:
            updates["meal_type"] = _parse_enum(MealType, meal_type, "meal_type")
        if not updates:
            return {"error": "No updates provided."}

        log_date = _day(services, date_str)
        current = services.nutrition.nutrition(log_date)
        existing = next((e for e in current.entries if e.id == entry_id), None)
        if existing is None:
            return {"error": "Entry not found."}

        entry = check_entry(existing.model_copy(update=updates))
        nutrition = services.nutrition.update_entry(log_date, entry)
    except EnergyLogError as e:
        return _error(e)

    if nutrition is None:
        return {"error": "Entry not found."}
    return {
        "entry": _entry_dict(entry),
        "daily_summary": summarize(nutrition).model_dump(mode="json"),
    }


@mcp.tool()
def delete_food(entry_id: str, date_str: str | None = None) -> dict:
    """Delete a food entry.

    Args:
        entry_id: The ID of the entry to delete
        date_str: Day the entry was logged on, YYYY-MM-DD (default today)

    Returns:
        Confirmation and updated daily summary
    """
    services = get_services()
    try:
        nutrition = services.nutrition.remove_entry(_day(services, date_str), entry_id)
    except EnergyLogError as e:
        return _error(e)

    if nutrition is None:
        return {"error": "Entry not found."}
    return {
        "success": True,
        "entries_remaining": len(nutrition.entries),
        "daily_summary": summarize(nutrition).model_dump(mode="json"),
    }


@mcp.tool()
def log_water(milliliters: float, date_str: str | None = None) -> dict:
    """Record water intake. A negative amount corrects an earlier entry.

    Returns:
        Water consumed and the day's water target
    """
    services = get_services()
    try:
        nutrition = services.nutrition.add_water(_day(services, date_str), milliliters)
    except EnergyLogError as e:
        return _error(e)

    return {
        "date": nutrition.log_date.isoformat(),
        "water_consumed": nutrition.water_consumed,
        "water_target": nutrition.water_target,
    }


# ==================== Meal Cache Tools ====================


def _meal_dict(meal: CachedMeal) -> dict:
    return {
        "id": meal.id,
        "name": meal.name,
        "calories": meal.calories,
        "protein": meal.protein,
        "use_count": meal.use_count,
        "last_used": meal.last_used.isoformat(),
    }


@mcp.tool()
def search_cache(query: str = "") -> dict:
    """Search recently used meals by name. An empty query lists them all.

    Args:
        query: Text to match anywhere in the meal name, ignoring case

    Returns:
        Matching meals, most recently used first
    """
    try:
        meals = get_services().meals.search(query)
    except EnergyLogError as e:
        return _error(e)
    return {"meals": [_meal_dict(m) for m in meals]}


@mcp.tool()
def add_to_cache(name: str, calories: float, protein: float | None = None) -> dict:
    """Save a meal for quick future logging. A meal with the same name is replaced.

    Args:
        name: Name of the meal (used for searching)
        calories: Calories per serving
        protein: Protein in grams

    Returns:
        The cached meal
    """
    try:
        meal = get_services().meals.remember(name, calories, protein)
    except EnergyLogError as e:
        return _error(e)
    return _meal_dict(meal)


@mcp.tool()
def log_cached_meal(meal_id: str, meal_type: str | None = None, date_str: str | None = None) -> dict:
    """Log a cached meal as a food entry.

    Args:
        meal_id: ID from search_cache
        meal_type: "breakfast", "lunch", "dinner" or "snack"
        date_str: Day to log to, YYYY-MM-DD (default today)

    Returns:
        The created entry with the updated daily summary
    """
    services = get_services()
    try:
        meal = services.meals.get(meal_id)
        if meal is None:
            return {"error": "Meal not found."}
        log_date = _day(services, date_str)
        entry = new_food_entry(
            calories=meal.calories,
            protein=meal.protein,
            meal_type=_parse_enum(MealType, meal_type, "meal_type") if meal_type else None,
            notes=meal.name,
        )
        nutrition = services.nutrition.add_entry(log_date, entry)
        services.meals.use(meal.id)
    except EnergyLogError as e:
        return _error(e)

    return {
        "entry": _entry_dict(entry),
        "daily_summary": summarize(nutrition).model_dump(mode="json"),
    }


# ==================== Query Tools ====================


@mcp.tool()
def get_today() -> dict:
    """Get today's complete food log with targets and summary."""
    services = get_services()
    try:
        return _day_dict(services.nutrition.nutrition(services.today()))
    except EnergyLogError as e:
        return _error(e)


@mcp.tool()
def get_day(date_str: str) -> dict:
    """Get a specific day's food log.

    Args:
        date_str: Date in YYYY-MM-DD format
    """
    services = get_services()
    try:
        return _day_dict(services.nutrition.nutrition(_day(services, date_str)))
    except EnergyLogError as e:
        return _error(e)


@mcp.tool()
async def get_history(start_date: str, end_date: str) -> dict:
    """Get per-day totals and balance over a date range, with goal progress.

    Totals and progress count only days with at least one entry. At most
    31 days; days after today are left out.

    Args:
        start_date: First day, YYYY-MM-DD
        end_date: Last day, YYYY-MM-DD

    Returns:
        Daily rows, range totals, dates with entries and progress against the goal
    """
    services = get_services()
    try:
        start = _parse_date(start_date, "start_date")
        end = _parse_date(end_date, "end_date")
        report = await services.history.history(start, end)
    except EnergyLogError as e:
        return _error(e)

    return {
        "start_date": report.start_date.isoformat(),
        "end_date": report.end_date.isoformat(),
        "days": [d.model_dump(mode="json") for d in report.days],
        "dates_with_entries": [d.isoformat() for d in report.dates_with_entries],
        "days_logged": report.days_logged,
        "totals": {
            "calories": report.total_calories,
            "protein": report.total_protein,
            "balance": report.total_balance,
        },
        "avg_daily_calories": report.avg_daily_calories,
        "target_balance": report.target_balance,
        "progress": report.progress.value if report.progress else None,
        "progress_details": report.progress_details,
    }


# ==================== Balance Tools ====================


@mcp.tool()
async def get_balance() -> dict:
    """Get the tracked day's calorie balance (consumed minus burned).

    Negative balance means a caloric deficit.
    """
    services = get_services()
    balance = services.tracker.current.value
    try:
        if balance is None or balance.log_date != services.tracker.tracked_date:
            balance = await services.tracker.recompute()
    except EnergyLogError as e:
        return _error(e)
    return _balance_dict(balance)


@mcp.tool()
async def get_balance_for_date(date_str: str) -> dict:
    """Get the calorie balance for a specific day.

    Args:
        date_str: Date in YYYY-MM-DD format
    """
    services = get_services()
    try:
        balance = await services.tracker.get_balance_for_date(_day(services, date_str))
    except EnergyLogError as e:
        return _error(e)
    return _balance_dict(balance)


@mcp.tool()
async def refresh_balance() -> dict:
    """Pull fresh data from the health feed now.

    Unlike the background sync, a failing health feed is reported here.
    """
    services = get_services()
    try:
        balance = await services.sync.manual_refresh()
    except ExternalFeedFailure as e:
        return {"error": e.message, "status": "failed"}
    except EnergyLogError as e:
        return _error(e)
    return {"status": "succeeded", "balance": _balance_dict(balance)}


@mcp.tool()
def get_sync_status() -> dict:
    """Get the background sync state and the last sync result."""
    sync = get_services().sync
    last = sync.last_result
    return {
        "running": sync.is_running,
        "state": sync.status.value.state.value,
        "last_result": last.model_dump(mode="json") if last else None,
    }


@mcp.tool()
async def start_tracking() -> dict:
    """Start periodic background sync of the balance."""
    services = get_services()
    services.sync.start()
    return {"running": True, "interval_seconds": services.settings.sync_interval}


@mcp.tool()
def stop_tracking() -> dict:
    """Stop periodic background sync."""
    get_services().sync.stop()
    return {"running": False}
