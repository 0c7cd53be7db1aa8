# Overview: Flask API route for the product action history.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor, require_manager
from ..services import action_log_service
from ..time_utils import parse_history_bound
from ..validation import ValidationError


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


@history_bp.get("")
@require_actor
@require_manager
def list_history():
    """
    Newest-first action history.

    Query params:
    - action: freeze | unfreeze | delete | reorder (optional)
    - actor: email of the user who performed the action (optional)
    - from / to: ISO-8601 datetimes or dates, inclusive bounds on performed_at;
      a bare "to" date covers the whole day (optional)
    - limit: int (optional, default HISTORY_DEFAULT_LIMIT)
    """
    try:
        from_time = parse_history_bound(request.args.get("from"))
        to_time = parse_history_bound(request.args.get("to"), end_of_day=True)
    except ValueError:
        return jsonify({"error": "from/to must be ISO-8601 dates or datetimes"}), 400

    try:
        items = action_log_service.query_history(
            action=request.args.get("action") or None,
            actor_id=request.args.get("actor") or None,
            from_time=from_time,
            to_time=to_time,
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"items": items}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load action history")
        return jsonify({"error": "Internal server error"}), 500
