# Overview: Flask API routes for product operations; parses input and returns JSON responses.

"""
Product routes.

- POST /sync is open to every profile; the caller's role decides which stock
  columns are written.
- Every other write is a manager action and lands in the action log.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_manager
from ..services import (
    action_log_service,
    bulk_sync_service,
    distributor_service,
    par_level_service,
    product_admin_service,
    scenario_service,
)
from ..services.gateway import GatewayError, RecordNotFoundError
from ..services.product_admin_service import FreezeOptions
from ..validation import ValidationError, NotFoundError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _admin_response(result, conflict: bool):
    status = 200 if result.success else (409 if conflict else 502)
    return jsonify(result.to_dict()), status


@products_bp.post("/sync")
@require_actor
def sync_products():
    """
    Push locally edited stock counts.

    Request body:
    {
        "products": [{"id": int, "bar1": num, "bar2": num, "cold_room": num}, ...]
    }

    Returns:
        200: All rows applied
        207: Some rows or batches failed (see errors)
        400: No valid input
    """
    data = request.get_json(silent=True) or {}
    products = data.get("products")
    if not isinstance(products, list):
        return jsonify({"error": "products must be a list"}), 400

    try:
        result = bulk_sync_service.bulk_sync(products, columns=g.columns)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sync products")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200 if result.success else 207


@products_bp.post("/<int:product_id>/freeze")
@require_actor
@require_manager
def freeze_product_route(product_id: int):
    """
    Request body (optional):
    {
        "hide_from_bar1": bool,   // default true
        "hide_from_bar2": bool    // default true
    }
    """
    data = request.get_json(silent=True) or {}
    hide_bar1 = data.get("hide_from_bar1", True)
    hide_bar2 = data.get("hide_from_bar2", True)
    if not isinstance(hide_bar1, bool) or not isinstance(hide_bar2, bool):
        return jsonify({"error": "hide_from_bar1/hide_from_bar2 must be true or false"}), 400

    try:
        result = product_admin_service.freeze_product(
            product_id, g.actor, FreezeOptions(hide_from_bar1=hide_bar1, hide_from_bar2=hide_bar2)
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError:
        current_app.logger.exception("Failed to freeze product")
        return jsonify({"error": "Store unavailable"}), 502
    except Exception:
        current_app.logger.exception("Failed to freeze product")
        return jsonify({"error": "Internal server error"}), 500

    return _admin_response(result, conflict=result.already_frozen)


@products_bp.post("/<int:product_id>/unfreeze")
@require_actor
@require_manager
def unfreeze_product_route(product_id: int):
    try:
        result = product_admin_service.unfreeze_product(product_id, g.actor)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError:
        current_app.logger.exception("Failed to unfreeze product")
        return jsonify({"error": "Store unavailable"}), 502
    except Exception:
        current_app.logger.exception("Failed to unfreeze product")
        return jsonify({"error": "Internal server error"}), 500

    return _admin_response(result, conflict=result.not_frozen)


@products_bp.delete("/<int:product_id>")
@require_actor
@require_manager
def delete_product_route(product_id: int):
    """Hard delete. The final state is kept in the action log."""
    try:
        result = product_admin_service.delete_product(product_id, g.actor)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Store unavailable"}), 502
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return _admin_response(result, conflict=False)


@products_bp.post("/reorder")
@require_actor
@require_manager
def reorder_products_route():
    """
    Request body:
    {
        "products": [{"id": int, "order_index": int}, ...],
        "category_id": int (optional)
    }

    Returns 207 when some writes failed; applied writes are kept.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = product_admin_service.update_products_order(
            data.get("products"), g.actor, data.get("category_id")
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reorder products")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200 if result.success else 207


@products_bp.put("/<int:product_id>/flags")
@require_actor
@require_manager
def update_flags_route(product_id: int):
    """
    Request body:
    {
        "red_flag": bool, "green_flag": bool, "yellow_flag": bool
    }
    Omitted flags are cleared.
    """
    data = request.get_json(silent=True) or {}
    try:
        product = scenario_service.update_product_flags(
            product_id,
            red=data.get("red_flag"),
            green=data.get("green_flag"),
            yellow=data.get("yellow_flag"),
        )
        return jsonify({"product": product}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RecordNotFoundError:
        return jsonify({"error": f"Product {product_id} not found"}), 404
    except Exception:
        current_app.logger.exception("Failed to update product flags")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/meta")
@require_actor
@require_manager
def update_meta_route(product_id: int):
    """
    Request body (any subset):
    {
        "company": str, "distributor": str, "unit": str
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = par_level_service.update_product_meta(product_id, data)
        return jsonify({"product": product}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update product metadata")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/distributor")
@require_actor
@require_manager
def link_distributor_route(product_id: int):
    """
    Request body:
    {
        "distributor_id": int | null
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = distributor_service.link_product_to_distributor(product_id, data.get("distributor_id"))
        return jsonify({"product": product}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to link product to distributor")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/history")
@require_actor
@require_manager
def product_history_route(product_id: int):
    """Newest-first action history; works for deleted products too."""
    limit = request.args.get("limit", type=int)
    try:
        items = action_log_service.get_product_history(product_id, limit=limit)
        return jsonify({"items": items}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load product history")
        return jsonify({"error": "Internal server error"}), 500
