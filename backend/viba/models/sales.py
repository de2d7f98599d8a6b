from __future__ import annotations

from ..extensions import db
from viba.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale header. `total` always equals the sum of its lines' unit costs;
    it is written once the lines are in place, within the same transaction.
    """
    __tablename__ = "sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    fecha = db.Column(db.DateTime(timezone=True), nullable=False)
    total = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fecha": to_utc_z(self.fecha),
            "total": self.total,
            "created_at": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Binds one inventory unit to one sale at a captured unit cost."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("inventory_unit_id", name="uq_sale_lines_inventory_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    inventory_unit_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=False)
    costo_unitario = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True))
    inventory_unit = db.relationship("InventoryUnit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "inventory_unit_id": self.inventory_unit_id,
            "costo_unitario": self.costo_unitario,
        }
