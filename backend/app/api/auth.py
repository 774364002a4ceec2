"""Authentication API endpoints."""

from flask import Blueprint, request, jsonify

from services.exceptions import AuthenticationError, IssueTrackerError
from services.jira_client import JiraClient

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@bp.route("/validate", methods=["POST"])
def validate_token():
    """Validate Jira credentials by fetching current user info.

    Expects JSON body with:
        - server: Jira server URL
        - email: User's Jira email
        - token: Jira API token
    """
    data = request.get_json(silent=True)

    if not data:
        return jsonify({"error": "Missing request body"}), 400

    server = data.get("server", "").rstrip("/")
    email = data.get("email")
    token = data.get("token")

    if not all([server, email, token]):
        return jsonify({"error": "Missing required fields: server, email, token"}), 400

    try:
        user_info = JiraClient(server, email, token, timeout=10).authenticate()
    except AuthenticationError:
        return jsonify({"error": "Invalid credentials"}), 401
    except IssueTrackerError as e:
        if e.status_code == 504:
            return jsonify({"error": "Connection to Jira timed out"}), 504
        return jsonify({"error": str(e)}), e.status_code or 500

    return jsonify({
        "data": {
            "valid": True,
            "user": {
                "accountId": user_info.get("accountId"),
                "displayName": user_info.get("displayName"),
                "emailAddress": user_info.get("emailAddress"),
                "avatarUrl": user_info.get("avatarUrls", {}).get("48x48")
            }
        }
    })
