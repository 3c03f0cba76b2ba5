"""Unit tests for meal cache functions."""

import pytest
from datetime import datetime, timedelta, timezone

from energylog.core.errors import ValidationError
from energylog.core.meals import (
    MAX_CACHED_MEALS,
    find_by_name,
    mark_used,
    normalize_name,
    remember_meal,
    search_meals,
    sort_recent,
)
from energylog.core.models import CachedMeal


T0 = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def meal(name, minutes=0, calories=400):
    return CachedMeal(name=name, calories=calories, last_used=T0 + timedelta(minutes=minutes))


class TestNormalizeName:
    """Tests for normalize_name function."""

    def test_strips_whitespace(self):
        assert normalize_name("  Oatmeal ") == "Oatmeal"

    def test_blank_rejected(self):
        """A name of only spaces is rejected."""
        with pytest.raises(ValidationError) as exc:
            normalize_name("   ")
        assert exc.value.field == "name"


class TestRememberMeal:
    """Tests for remember_meal function."""

    def test_new_meal_goes_first(self):
        """A new meal is the most recent one."""
        meals = [meal("Toast", 0), meal("Salad", 5)]
        saved, evicted = remember_meal(meals, "Soup", 250, 12, now=T0 + timedelta(minutes=10))
        assert saved.name == "Soup"
        assert saved.protein == 12
        assert evicted == []
        assert sort_recent([saved, *meals])[0] is saved

    def test_same_name_updates_existing(self):
        """Names match ignoring case; the cached meal keeps its ID and count."""
        old = meal("Greek Yogurt").model_copy(update={"use_count": 3})
        saved, evicted = remember_meal([old], "greek yogurt", 180, now=T0 + timedelta(hours=1))
        assert saved.id == old.id
        assert saved.name == "greek yogurt"
        assert saved.calories == 180
        assert saved.use_count == 3
        assert saved.last_used == T0 + timedelta(hours=1)
        assert evicted == []

    def test_least_recent_evicted_past_capacity(self):
        """Only the capacity's worth of most recent meals is kept."""
        meals = [meal(f"Meal {i}", i) for i in range(MAX_CACHED_MEALS)]
        saved, evicted = remember_meal(meals, "Newest", 100, now=T0 + timedelta(days=1))
        assert [m.name for m in evicted] == ["Meal 0"]

    def test_custom_capacity(self):
        meals = [meal("A", 0), meal("B", 1), meal("C", 2)]
        _, evicted = remember_meal(meals, "D", 100, now=T0 + timedelta(days=1), max_size=2)
        assert {m.name for m in evicted} == {"A", "B"}

    def test_invalid_calories_rejected(self):
        """Values outside model bounds raise ValidationError naming the field."""
        with pytest.raises(ValidationError) as exc:
            remember_meal([], "Feast", 20000)
        assert exc.value.field == "calories"


class TestMarkUsed:
    """Tests for mark_used function."""

    def test_bumps_count_and_time(self):
        used = mark_used(meal("Toast"), now=T0 + timedelta(days=2))
        assert used.use_count == 1
        assert used.last_used == T0 + timedelta(days=2)


class TestSearchMeals:
    """Tests for search_meals and find_by_name."""

    def test_substring_ignores_case(self):
        meals = [meal("Chicken Salad", 0), meal("Toast", 1), meal("chicken soup", 2)]
        assert [m.name for m in search_meals(meals, "CHICKEN")] == ["chicken soup", "Chicken Salad"]

    def test_empty_query_returns_all_recent_first(self):
        meals = [meal("A", 0), meal("B", 2), meal("C", 1)]
        assert [m.name for m in search_meals(meals)] == ["B", "C", "A"]

    def test_no_match(self):
        assert search_meals([meal("Toast")], "pizza") == []

    def test_find_by_name(self):
        meals = [meal("Toast"), meal("Salad")]
        assert find_by_name(meals, " salad ").name == "Salad"
        assert find_by_name(meals, "Soup") is None
