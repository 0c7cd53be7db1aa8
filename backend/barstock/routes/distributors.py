# Overview: Flask API routes for distributor management.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor, require_manager
from ..services import distributor_service
from ..validation import ValidationError, NotFoundError


distributors_bp = Blueprint("distributors", __name__, url_prefix="/api/distributors")


@distributors_bp.get("")
@require_actor
@require_manager
def list_distributors():
    try:
        return jsonify({"items": distributor_service.list_distributors()}), 200
    except Exception:
        current_app.logger.exception("Failed to list distributors")
        return jsonify({"error": "Internal server error"}), 500


@distributors_bp.post("")
@require_actor
@require_manager
def create_distributor():
    """
    Request body:
    {
        "name": str,
        "whatsapp": str (optional; spaces, "+", "-" and parentheses are stripped)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        distributor = distributor_service.save_distributor(data.get("name"), data.get("whatsapp"))
        return jsonify({"distributor": distributor}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create distributor")
        return jsonify({"error": "Internal server error"}), 500


@distributors_bp.put("/<int:distributor_id>")
@require_actor
@require_manager
def update_distributor(distributor_id: int):
    data = request.get_json(silent=True) or {}
    try:
        distributor = distributor_service.save_distributor(
            data.get("name"), data.get("whatsapp"), distributor_id
        )
        return jsonify({"distributor": distributor}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update distributor")
        return jsonify({"error": "Internal server error"}), 500


@distributors_bp.delete("/<int:distributor_id>")
@require_actor
@require_manager
def delete_distributor(distributor_id: int):
    """Products linked to the distributor keep existing with distributor_id = null."""
    try:
        detached = distributor_service.delete_distributor(distributor_id)
        return jsonify({"deleted": distributor_id, "detached_products": detached}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete distributor")
        return jsonify({"error": "Internal server error"}), 500
