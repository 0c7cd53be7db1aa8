# Overview: Flask API routes for the catalog (categories and products listing/creation).

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_manager
from ..services import catalog_service
from ..services.catalog_service import CatalogUnavailableError
from ..services.gateway import GatewayError
from ..validation import ValidationError, ConflictError, NotFoundError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/catalog")
@require_actor
def get_catalog():
    """
    Categories plus enriched products for the caller's station.

    Response:
        {"categories": [...], "products": [...], "stale": bool, "saved_at": str|null,
         "available_columns": [...]}

    stale=True means the store could not be reached and the last cached
    snapshot is served instead.
    """
    try:
        snapshot = catalog_service.load_catalog()
    except CatalogUnavailableError as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to load catalog")
        return jsonify({"error": "Internal server error"}), 500

    body = snapshot.to_dict()
    body["products"] = catalog_service.visible_products(snapshot.products, g.columns)
    body["available_columns"] = list(g.columns)
    return jsonify(body), 200


@catalog_bp.post("/categories")
@require_actor
@require_manager
def create_category_route():
    """
    Request body:
    {
        "name": str,
        "order_index": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(data.get("name"), data.get("order_index"))
        return jsonify({"category": category}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.post("/products")
@require_actor
@require_manager
def create_product_route():
    """
    Request body:
    {
        "category_id": int,
        "name": str,
        "volume": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(data.get("category_id"), data.get("name"), data.get("volume"))
        return jsonify({"product": product}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Store unavailable"}), 502
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
