# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/viba/routes/sales.py
"""Sales API routes. All require a full session (Auth cookie)."""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import json_body, require_auth
from ..services import providers
from ..services.errors import ServiceError


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/vender")
@require_auth()
def sell_route():
    """
    Sell products from available stock.

    Body: {"productos": [{"producto": "ribeye", "cantidad": 2}], "fecha_emision": optional}
    """
    try:
        data = json_body()
        result = providers.sale_processor().sell_products(
            data.get("productos"),
            fecha=data.get("fecha_emision"),
        )
        return jsonify({"message": "Venta realizada exitosamente.", **result}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sell products")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/ventas")
@require_auth()
def list_sales_route():
    try:
        return jsonify(providers.sale_processor().get_sales()), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/ventas/<int:sale_id>")
@require_auth()
def update_sale_route(sale_id: int):
    """Body: {"productos": [{"nombre", "cantidad", "costo_unitario"}]}"""
    try:
        data = json_body()
        total = providers.sale_processor().update_sale(sale_id, data.get("productos"))
        return jsonify({"message": f"Venta {sale_id} actualizada", "total": total}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/ventas/<int:sale_id>")
@require_auth()
def delete_sale_route(sale_id: int):
    """Delete a sale. ?restock=true returns its units to available stock."""
    try:
        restock = request.args.get("restock", "false").lower() in ("1", "true", "yes")
        providers.sale_processor().delete_sale(sale_id, restock=restock)
        return jsonify({"message": f"Venta {sale_id} eliminada exitosamente"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
