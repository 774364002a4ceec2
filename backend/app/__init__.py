"""Flask application factory."""

import json
import os
from flask import Flask
from flask_cors import CORS

from services.exceptions import ConfigurationError
from services.models import TeamSyncConfig

DEFAULT_TEAMS_SYNC_CONFIG = os.path.join(
    os.path.dirname(__file__), "..", "config", "teams-sync.json"
)

# Global config storage - team id -> TeamSyncConfig
_team_sync_configs = {}


def load_teams_sync_config(app, config_path=None):
    """Load per-team sync policies from the teams-sync config file."""
    global _team_sync_configs
    config_path = config_path or os.environ.get("TEAMS_SYNC_CONFIG", DEFAULT_TEAMS_SYNC_CONFIG)
    _team_sync_configs = {}

    if not os.path.exists(config_path):
        app.logger.info("No teams-sync.json found, only inline team configs can be synced")
        return

    try:
        with open(config_path, "r") as f:
            config = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        app.logger.warning(f"Failed to load teams sync config: {e}")
        return

    for entry in config.get("teams", []):
        try:
            team = TeamSyncConfig.from_dict(entry)
        except ConfigurationError as e:
            app.logger.warning(f"Skipping team sync config {entry.get('id')}: {e}")
            continue

        if team.team_id is None:
            app.logger.warning(f"Skipping team sync config for {team.project_key}: missing id")
            continue

        _team_sync_configs[team.team_id] = team

    app.logger.info(f"Loaded {len(_team_sync_configs)} team sync configs")


def get_team_sync_config(team_id):
    """Look up a registered team sync config, None if unknown."""
    return _team_sync_configs.get(str(team_id))


def list_team_sync_configs():
    return list(_team_sync_configs.values())


def create_app():
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": [
                "Content-Type",
                "X-Jira-Token", "X-Jira-Email", "X-Jira-Server"
            ]
        }
    })

    app.config["SYNC_MAX_WORKERS"] = int(os.environ.get("SYNC_MAX_WORKERS", "1"))

    # Register blueprints
    from app.api import auth, sync
    app.register_blueprint(auth.bp)
    app.register_blueprint(sync.bp)

    load_teams_sync_config(app)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
