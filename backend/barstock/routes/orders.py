# Overview: Flask API routes for par levels, order summaries, order messages and CSV export.

from flask import Blueprint, Response, request, jsonify, current_app

from ..decorators import require_actor, require_manager
from ..services import catalog_service, export_service, order_service, par_level_service
from ..services.catalog_service import CatalogUnavailableError
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.get("/par-levels")
@require_actor
@require_manager
def list_par_levels():
    try:
        return jsonify({"items": par_level_service.list_par_levels()}), 200
    except Exception:
        current_app.logger.exception("Failed to list par levels")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/par-levels")
@require_actor
@require_manager
def save_par_levels():
    """
    Request body, either one item or a batch:
    {"product_id": int, "total_par": num}
    {"items": [{"product_id": int, "total_par": num}, ...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        if "items" in data:
            items = par_level_service.upsert_par_levels_bulk(data["items"])
        else:
            items = [par_level_service.upsert_par_level(data.get("product_id"), data.get("total_par"))]
        return jsonify({"items": items}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to save par levels")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orders/summary")
@require_actor
@require_manager
def order_summary():
    """
    Query params:
    - status: no_par | order | overstock | ok (optional filter)
    """
    status = request.args.get("status")
    try:
        rows = par_level_service.build_order_summary()
    except Exception:
        current_app.logger.exception("Failed to build order summary")
        return jsonify({"error": "Internal server error"}), 500

    if status:
        rows = [r for r in rows if r["status"] == status]
    return jsonify({"items": rows}), 200


@orders_bp.get("/orders/messages")
@require_actor
@require_manager
def order_messages():
    """One order text per distributor, plus a wa.me link when a number is known."""
    try:
        messages = order_service.build_order_messages(
            par_level_service.build_order_summary(),
            venue=current_app.config.get("VENUE_NAME"),
        )
        return jsonify({"items": messages}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build order messages")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/export/products.csv")
@require_actor
@require_manager
def export_products():
    """
    Query params:
    - only: frozen | active (optional)
    """
    try:
        snapshot = catalog_service.load_catalog()
        body = export_service.export_products_csv(
            snapshot.products, snapshot.categories, only=request.args.get("only") or None
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogUnavailableError as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to export products")
        return jsonify({"error": "Internal server error"}), 500

    filename = f"stock_{utcnow().date().isoformat()}.csv"
    return Response(
        body.encode("utf-8"),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
