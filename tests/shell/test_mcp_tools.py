"""Tests for MCP tool functions called directly with fake services."""

import asyncio
import pytest

from energylog.core.errors import ExternalFeedFailure
from energylog.shell import mcp_server
from energylog.shell.config import Settings
from energylog.shell.services import build_services


@pytest.fixture
def services(store, feed, today):
    services = build_services(Settings(), store=store, feed=feed, today=today)
    mcp_server.configure_services(services)
    yield services
    mcp_server.configure_services(None)


class TestProfileTools:
    """Tests for setup_profile and get_profile."""

    def test_setup_profile_imperial(self, services, store):
        """Imperial input is stored in metric units."""
        result = asyncio.run(mcp_server.setup_profile(
            age=30, weight=176.37, height=70.866, sex="male",
            activity_level="moderately_active", preferred_units="imperial",
        ))
        assert "error" not in result
        assert store.profile.weight == pytest.approx(80, abs=0.01)
        assert store.profile.height == pytest.approx(180, abs=0.01)

    def test_setup_profile_bad_sex(self, services):
        """Unknown enum values become an error payload."""
        result = asyncio.run(mcp_server.setup_profile(
            age=30, weight=80, height=180, sex="robot", activity_level="sedentary",
        ))
        assert result["error"].startswith("sex must be one of")

    def test_setup_profile_bad_age(self, services):
        """Out-of-range metrics become an error payload."""
        result = asyncio.run(mcp_server.setup_profile(
            age=0, weight=80, height=180, sex="male", activity_level="sedentary",
        ))
        assert "error" in result

    def test_get_profile(self, services):
        """Profile includes BMR and daily energy need."""
        result = mcp_server.get_profile()
        assert result["bmr"] == 1780
        assert result["daily_energy_need"] == 2759

    def test_get_profile_missing(self, services, store):
        """Missing profile gives an error payload."""
        store.profile = None
        assert "error" in mcp_server.get_profile()


class TestGoalTools:
    """Tests for goal tools."""

    def test_create_goal(self, services):
        """Goal is created with derived targets and planning hints."""
        result = asyncio.run(mcp_server.create_goal(
            goal_type="lose_weight", weekly_weight_change=-0.5, target_weight=75,
        ))
        assert result["daily_protein_target"] == 128
        assert result["recommended_weekly_change"] == {"min": -1.0, "max": -0.25}
        assert result["estimated_days_to_goal"] == 70

    def test_create_goal_unsafe(self, services):
        """Unsafe rates are reported, not raised."""
        result = asyncio.run(mcp_server.create_goal(goal_type="lose_weight", weekly_weight_change=-2.0))
        assert "outside the safe range" in result["error"]

    def test_create_goal_bad_date(self, services):
        """Bad dates are reported."""
        result = asyncio.run(mcp_server.create_goal(goal_type="lose_weight", target_date="soon"))
        assert result["error"] == "Invalid date format. Use YYYY-MM-DD."

    def test_update_goal_without_goal(self, services):
        """Updating with no goal reports GoalNotFound."""
        result = asyncio.run(mcp_server.update_goal(weekly_weight_change=-0.5))
        assert "No active goal" in result["error"]

    def test_reset_goal(self, services, store):
        """Reset deactivates the goal."""
        asyncio.run(mcp_server.create_goal(goal_type="maintain_weight"))
        result = mcp_server.reset_goal()
        assert result["success"] is True
        assert store.fetch_active_goal() is None

    def test_edit_goal_is_debounced(self, services, store):
        """edit_goal schedules rather than saves."""

        async def scenario():
            result = await mcp_server.edit_goal(goal_type="maintain_weight")
            saved_before_flush = list(store.saved_goals)
            await services.debouncer.flush()
            return result, saved_before_flush

        result, saved_before_flush = asyncio.run(scenario())
        assert result["pending_fields"] == ["goal_type"]
        assert saved_before_flush == []
        assert len(store.saved_goals) == 1

    def test_edit_weight_out_of_range(self, services):
        """Impossible weights are reported instead of scheduled."""
        result = asyncio.run(mcp_server.edit_weight(1500))
        assert result == {"error": "Weight must be between 1 and 999 kg"}
        assert services.debouncer.pending is False


class TestFoodTools:
    """Tests for food logging tools."""

    def test_log_and_delete(self, services):
        """Logging updates the summary; deleting restores it."""
        first = mcp_server.log_food(calories=300, protein=20, meal_type="breakfast")
        mcp_server.log_food(calories=450, protein=35)
        summary = mcp_server.get_today()["summary"]
        assert summary["total_calories"] == 750
        assert summary["total_protein"] == 55

        result = mcp_server.delete_food(first["entry"]["id"])
        assert result["daily_summary"]["total_calories"] == 450
        assert result["daily_summary"]["total_protein"] == 35

    def test_invalid_food_rejected(self, services):
        """Negative calories produce an error and no entry."""
        result = mcp_server.log_food(calories=-5)
        assert "calories" in result["error"]
        assert mcp_server.get_today()["entries"] == []

    def test_update_food(self, services):
        """Only provided fields change."""
        entry = mcp_server.log_food(calories=300, protein=20)["entry"]
        result = mcp_server.update_food(entry["id"], calories=350)
        assert result["entry"]["calories"] == 350
        assert result["entry"]["protein"] == 20

    def test_update_food_breaking_bound(self, services):
        """Updates are validated before they apply."""
        entry = mcp_server.log_food(calories=300, fats=10)["entry"]
        result = mcp_server.update_food(entry["id"], saturated_fats=20)
        assert "error" in result
        assert mcp_server.get_today()["summary"]["total_calories"] == 300

    def test_update_unknown(self, services):
        """Unknown ids are reported."""
        assert mcp_server.update_food("missing", calories=1)["error"] == "Entry not found."

    def test_meal_grouping(self, services):
        """Untagged entries are grouped as snacks."""
        mcp_server.log_food(calories=300, meal_type="lunch")
        mcp_server.log_food(calories=120)
        by_meal = mcp_server.get_today()["by_meal"]["calories"]
        assert by_meal == {"lunch": 300, "snack": 120}

    def test_log_water(self, services):
        """Water accumulates."""
        mcp_server.log_water(400)
        assert mcp_server.log_water(350)["water_consumed"] == 750

    def test_get_day_bad_date(self, services):
        """Bad dates are reported."""
        assert "error" in mcp_server.get_day("14/03/2026")


class TestBalanceTools:
    """Tests for balance and sync tools."""

    def test_get_balance(self, services):
        """Balance is composed on first request."""
        mcp_server.log_food(calories=1800)
        result = asyncio.run(mcp_server.get_balance())
        assert result["balance"] == -400
        assert result["description"] == "Caloric Deficit"
        assert result["is_from_external_feed"] is True

    def test_refresh_surfaces_feed_failure(self, services, feed):
        """Manual refresh reports a failing feed."""
        feed.error = ExternalFeedFailure("Could not reach your health data.")
        result = asyncio.run(mcp_server.refresh_balance())
        assert result == {"error": "Could not reach your health data.", "status": "failed"}
        assert mcp_server.get_sync_status()["last_result"]["state"] == "failed"

    def test_balance_falls_back_when_feed_fails(self, services, feed):
        """get_balance still answers when the feed is down."""
        feed.error = ExternalFeedFailure("Could not reach your health data.")
        result = asyncio.run(mcp_server.get_balance_for_date("2026-03-14"))
        assert result["is_from_external_feed"] is False

    def test_start_and_stop_tracking(self, services):
        """Tracking can be started and stopped."""

        async def scenario():
            started = await mcp_server.start_tracking()
            running = mcp_server.get_sync_status()["running"]
            stopped = mcp_server.stop_tracking()
            await asyncio.sleep(0)
            return started, running, stopped

        started, running, stopped = asyncio.run(scenario())
        assert started["running"] is True
        assert running is True
        assert stopped == {"running": False}


class TestMealCacheTools:
    """Tests for search_cache, add_to_cache and log_cached_meal."""

    def test_add_search_and_log(self, services, store):
        """A cached meal can be found and logged as an entry."""
        meal = mcp_server.add_to_cache("Chicken Salad", 450, 35)
        mcp_server.add_to_cache("Toast", 200)

        found = mcp_server.search_cache("salad")["meals"]
        assert [m["id"] for m in found] == [meal["id"]]

        result = mcp_server.log_cached_meal(meal["id"], meal_type="lunch")
        assert result["entry"]["calories"] == 450
        assert result["entry"]["protein"] == 35
        assert result["entry"]["notes"] == "Chicken Salad"
        assert result["daily_summary"]["total_calories"] == 450
        assert store.meals[meal["id"]].use_count == 1

    def test_empty_query_lists_all(self, services):
        mcp_server.add_to_cache("Toast", 200)
        mcp_server.add_to_cache("Soup", 250)
        assert len(mcp_server.search_cache()["meals"]) == 2

    def test_unknown_meal(self, services):
        assert mcp_server.log_cached_meal("missing") == {"error": "Meal not found."}

    def test_invalid_meal(self, services):
        assert "error" in mcp_server.add_to_cache("", 200)


class TestHistoryTool:
    """Tests for get_history."""

    def test_history_range(self, services):
        """Rows cover every day; only logged days count toward totals."""
        mcp_server.log_food(calories=1800, date_str="2026-03-12")
        mcp_server.log_food(calories=1600, date_str="2026-03-14")
        result = asyncio.run(mcp_server.get_history("2026-03-12", "2026-03-14"))
        assert len(result["days"]) == 3
        assert result["dates_with_entries"] == ["2026-03-12", "2026-03-14"]
        assert result["totals"]["calories"] == 3400
        assert result["totals"]["balance"] == -1000
        assert result["progress"] is None

    def test_history_bad_range(self, services):
        result = asyncio.run(mcp_server.get_history("2026-03-14", "2026-03-01"))
        assert result == {"error": "End date must not be before start date"}

    def test_history_bad_date(self, services):
        result = asyncio.run(mcp_server.get_history("03/01/2026", "2026-03-14"))
        assert result["error"] == "Invalid date format. Use YYYY-MM-DD."
