from __future__ import annotations

from ..extensions import db
from viba.time_utils import to_utc_z


STATE_AVAILABLE = "disponible"
STATE_SOLD = "vendido"


class InventoryUnit(db.Model):
    """
    One physical unit of stock.

    Units are inserted in batches when an order is completed (one row per
    unit ordered) and only ever move disponible -> vendido when a sale
    consumes them. `fecha` is the FIFO key for reservations.
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        # FIFO lookup: available units of a product, oldest first
        db.Index("ix_inventory_units_producto_estado_fecha", "producto", "estado", "fecha"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    producto = db.Column(db.String(64), nullable=False)
    estado = db.Column(db.String(16), nullable=False, default=STATE_AVAILABLE, index=True)

    fecha = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tipo_movimiento = db.Column(db.String(64), nullable=True)
    observaciones = db.Column(db.Text, nullable=True)

    # Sale that consumed the unit (NULL while available or after the sale is deleted)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<InventoryUnit id={self.id} producto={self.producto!r} estado={self.estado}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "producto": self.producto,
            "estado": self.estado,
            "fecha": to_utc_z(self.fecha),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "tipo_movimiento": self.tipo_movimiento,
            "observaciones": self.observaciones,
            "sale_id": self.sale_id,
            "order_id": self.order_id,
        }
