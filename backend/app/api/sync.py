"""Sprint sync API endpoints.

The caller owns the sprint model: it posts the sprint's day buckets and
stores the recomputed sprint returned by the sync.
"""

from flask import Blueprint, current_app, request, jsonify

from app import get_team_sync_config, list_team_sync_configs
from services.exceptions import AuthenticationError, ConfigurationError, IssueTrackerError, SyncFailure
from services.jira_client import JiraClient
from services.models import Sprint, TeamSyncConfig
from services.sprint_sync import SprintSyncService

bp = Blueprint("sync", __name__, url_prefix="/api/sync")


def get_jira_credentials():
    """Extract Jira credentials from request headers."""
    server = request.headers.get("X-Jira-Server", "").rstrip("/")
    email = request.headers.get("X-Jira-Email")
    token = request.headers.get("X-Jira-Token")

    if not all([server, email, token]):
        return None, None, None

    return server, email, token


@bp.route("/teams", methods=["GET"])
def list_teams():
    """List teams with a registered sync config."""
    return jsonify({"data": [team.to_dict() for team in list_team_sync_configs()]})


@bp.route("/teams/<team_id>/sprints/<sprint_id>", methods=["POST"])
def sync_team_sprint(team_id, sprint_id):
    """Sync a sprint using the registered config of a team.

    Expects JSON body with:
        - days: list of {date, burned, unplanned}
        - planned: optional current goal (overwritten)
    """
    team = get_team_sync_config(team_id)
    if team is None:
        return jsonify({"error": f"Unknown team: {team_id}"}), 404

    return _run_sync(team, sprint_id, request.get_json(silent=True))


@bp.route("/sprints/<sprint_id>", methods=["POST"])
def sync_sprint(sprint_id):
    """Sync a sprint with an inline team config.

    Expects JSON body with:
        - team: team sync config (projectKey, versionNameScheme, effortMode, ...)
        - days: list of {date, burned, unplanned}
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Missing request body"}), 400

    try:
        team = TeamSyncConfig.from_dict(data.get("team"))
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 400

    return _run_sync(team, sprint_id, data)


def _run_sync(team, sprint_id, data):
    server, email, token = get_jira_credentials()

    if not server:
        return jsonify({"error": "Missing Jira credentials in headers"}), 401

    if not data:
        return jsonify({"error": "Missing request body"}), 400

    try:
        sprint = Sprint.from_dict(sprint_id, data)
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 400

    client = JiraClient(server, email, token)
    try:
        client.authenticate()
    except AuthenticationError:
        return jsonify({"error": "Invalid credentials"}), 401
    except IssueTrackerError as e:
        status = 504 if e.status_code == 504 else 502
        return jsonify({"error": str(e)}), status

    service = SprintSyncService(client, max_workers=current_app.config.get("SYNC_MAX_WORKERS", 1))

    try:
        result = service.sync_sprint(team, sprint)
    except SyncFailure as e:
        cause = e.__cause__
        status = 504 if isinstance(cause, IssueTrackerError) and cause.status_code == 504 else 502
        return jsonify({"error": str(e)}), status

    current_app.logger.info(
        f"Synced sprint {sprint.id} of {team.project_key}: planned {sprint.planned}, "
        f"{len(result.issue_keys)} issues, {len(result.events)} events"
    )
    return jsonify({"data": result.to_dict()})
