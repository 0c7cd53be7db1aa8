# Overview: Flask API routes for scenario sweeps and flag statistics.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_manager
from ..services import scenario_service
from ..validation import ValidationError


scenarios_bp = Blueprint("scenarios", __name__, url_prefix="/api/scenarios")


@scenarios_bp.get("")
@require_actor
@require_manager
def list_scenarios():
    return jsonify({
        "scenarios": [
            {"id": s.id, "name": s.name, "flag": s.flag, "color": s.color, "description": s.description}
            for s in scenario_service.SCENARIOS
        ]
    }), 200


@scenarios_bp.post("/run")
@require_actor
@require_manager
def run_scenario_route():
    """
    Freeze every product without the scenario flag, unfreeze the rest.

    Request body:
    {
        "scenario": str   // "stocks" | "revision" | "long_freeze", or a flag/colour
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        result = scenario_service.run_scenario(data.get("scenario"), g.actor)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to run scenario")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200 if result.success else 502


@scenarios_bp.post("/stop")
@require_actor
@require_manager
def stop_scenarios_route():
    """Unfreeze every product."""
    try:
        result = scenario_service.stop_all_scenarios(g.actor)
    except Exception:
        current_app.logger.exception("Failed to stop scenarios")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200 if result.success else 502


@scenarios_bp.get("/stats")
@require_actor
@require_manager
def scenario_stats_route():
    try:
        return jsonify(scenario_service.get_flags_statistics()), 200
    except Exception:
        current_app.logger.exception("Failed to load flag statistics")
        return jsonify({"error": "Internal server error"}), 500
