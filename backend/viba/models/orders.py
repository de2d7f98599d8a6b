from __future__ import annotations

from ..extensions import db
from viba.time_utils import to_utc_z


ORDER_PENDING = "pendiente"
ORDER_COMPLETED = "completada"


class Order(db.Model):
    """Purchase order from a requester (retailer) to a supplier."""
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    estado = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)

    fecha_emision = db.Column(db.DateTime(timezone=True), nullable=False)
    fecha_recepcion = db.Column(db.DateTime(timezone=True), nullable=True)

    requester = db.relationship("User", foreign_keys=[requester_id])
    supplier = db.relationship("User", foreign_keys=[supplier_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "supplier_id": self.supplier_id,
            "estado": self.estado,
            "fecha_emision": to_utc_z(self.fecha_emision),
            "fecha_recepcion": to_utc_z(self.fecha_recepcion) if self.fecha_recepcion else None,
            "productos": [line.to_dict() for line in self.lines],
        }


class OrderLine(db.Model):
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    producto = db.Column(db.String(64), nullable=False)
    cantidad = db.Column(db.Integer, nullable=False)
    precio = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("lines", lazy=True, order_by="OrderLine.id"))

    def to_dict(self) -> dict:
        return {
            "producto": self.producto,
            "cantidad": self.cantidad,
            "precio": self.precio,
        }
