# backend/viba/routes/inventory.py
"""Inventory read routes."""

from flask import Blueprint, jsonify, current_app

from ..decorators import require_auth
from ..extensions import db
from ..repositories import InventoryRepository


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/inventario")
@require_auth()
def available_inventory_route():
    """Available units grouped by product: [{"producto", "cantidad"}]."""
    try:
        return jsonify(InventoryRepository(db.session).available_summary()), 200
    except Exception:
        current_app.logger.exception("Failed to load inventory")
        return jsonify({"error": "Internal server error"}), 500
