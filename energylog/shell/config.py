"""Settings - runtime configuration read from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping


@dataclass
class Settings:
    """Configuration for the service.

    Attributes:
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name
        user_id: Document ID the single-user store is scoped to
        health_feed_url: Base URL of the wearable bridge (None disables the feed)
        health_feed_token: Bearer token for the bridge and the change webhook
        feed_timeout: Seconds allowed for one feed fetch
        sync_interval: Seconds between background sync ticks
        goal_debounce: Quiescence window for goal parameter edits
        weight_debounce: Quiescence window for weight edits
        host: HTTP listen address
        port: HTTP listen port
    """

    firestore_project: str | None = None
    firestore_database: str = "energylog"
    user_id: str = "default"
    health_feed_url: str | None = None
    health_feed_token: str | None = None
    feed_timeout: float = 10.0
    sync_interval: float = 300.0
    goal_debounce: float = 0.5
    weight_debounce: float = 0.3
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            firestore_project=env.get("FIRESTORE_PROJECT") or None,
            firestore_database=env.get("FIRESTORE_DATABASE", "energylog"),
            user_id=env.get("ENERGYLOG_USER_ID", "default"),
            health_feed_url=env.get("HEALTH_FEED_URL") or None,
            health_feed_token=env.get("HEALTH_FEED_TOKEN") or None,
            feed_timeout=float(env.get("FEED_TIMEOUT_SECONDS", 10)),
            sync_interval=float(env.get("SYNC_INTERVAL_SECONDS", 300)),
            goal_debounce=float(env.get("GOAL_DEBOUNCE_SECONDS", 0.5)),
            weight_debounce=float(env.get("WEIGHT_DEBOUNCE_SECONDS", 0.3)),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", 8080)),
        )
