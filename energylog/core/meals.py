"""Meal Cache - Pure functions over the recently used meals list.

The list is kept most recently used first and capped at MAX_CACHED_MEALS.
Meal names are unique ignoring case; remembering a known name updates that
meal instead of adding a second one.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import CachedMeal, utcnow


MAX_CACHED_MEALS = 50


def _build_meal(**fields: Any) -> CachedMeal:
    try:
        return CachedMeal(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else "meal"
        raise ValidationError(field, f"Invalid {field}: {first['msg']}") from e


def normalize_name(name: str) -> str:
    """Strip surrounding whitespace; an empty name is rejected."""
    name = name.strip()
    if not name:
        raise ValidationError("name", "Meal name cannot be empty")
    return name


def sort_recent(meals: list[CachedMeal]) -> list[CachedMeal]:
    return sorted(meals, key=lambda m: m.last_used, reverse=True)


def find_by_name(meals: list[CachedMeal], name: str) -> Optional[CachedMeal]:
    key = name.strip().lower()
    return next((m for m in meals if m.name.lower() == key), None)


def remember_meal(
    meals: list[CachedMeal],
    name: str,
    calories: float,
    protein: Optional[float] = None,
    *,
    now: Optional[datetime] = None,
    max_size: int = MAX_CACHED_MEALS,
) -> tuple[CachedMeal, list[CachedMeal]]:
    """Add a meal, or refresh the one with the same name.

    Args:
        meals: Current cache contents
        name: Meal name
        calories: Calories per serving
        protein: Protein in grams, if known
        now: Timestamp to record as last use
        max_size: Cache capacity

    Returns:
        Tuple of (saved meal, meals evicted to stay within max_size)

    Raises:
        ValidationError: Empty name or values out of range
    """
    name = normalize_name(name)
    fields = {
        "name": name,
        "calories": calories,
        "protein": protein,
        "last_used": now or utcnow(),
    }
    existing = find_by_name(meals, name)
    if existing is not None:
        meal = _build_meal(**{**existing.model_dump(), **fields})
    else:
        meal = _build_meal(**fields)

    others = [m for m in meals if m.id != meal.id]
    kept = sort_recent([meal, *others])
    return meal, kept[max_size:]


def mark_used(meal: CachedMeal, now: Optional[datetime] = None) -> CachedMeal:
    """Move a meal to the front by stamping it as just used."""
    return meal.model_copy(update={
        "last_used": now or utcnow(),
        "use_count": meal.use_count + 1,
    })


def search_meals(meals: list[CachedMeal], query: str = "") -> list[CachedMeal]:
    """Case-insensitive substring match on name, most recently used first.

    An empty query returns every meal.
    """
    query = query.strip().lower()
    return [m for m in sort_recent(meals) if query in m.name.lower()]
