# Overview: Flask API routes for creating and completing purchase orders.

from flask import Blueprint, jsonify, current_app

from ..decorators import json_body, require_auth
from ..services import providers
from ..services.errors import ServiceError


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/nuevaorden")
@require_auth()
def create_order_route():
    """
    Body: {"correo_solicita", "correo_provee", "fecha_emision",
           "productos": [{"producto", "cantidad", "precio"}]}
    """
    try:
        data = json_body()
        order = providers.order_service().create_order(
            data.get("correo_solicita"),
            data.get("correo_provee"),
            data.get("productos"),
            data.get("fecha_emision"),
        )
        return jsonify({"message": "Orden creada exitosamente", "id_orden": order.id}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/completarorden/<int:order_id>")
@require_auth()
def complete_order_route(order_id: int):
    """Mark the order received and bring its units into inventory."""
    try:
        data = json_body()
        inserted = providers.order_service().complete_order(order_id, data.get("fecha_recepcion"))
        return jsonify({
            "message": f"Orden {order_id} completada y productos ingresados al inventario",
            "unidades": inserted,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete order")
        return jsonify({"error": "Internal server error"}), 500
