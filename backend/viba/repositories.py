# backend/viba/repositories.py
"""
Data access for users, inventory units and sales.

Each repository wraps a SQLAlchemy session handed in by the caller; none of
them commit. The service that owns the unit of work decides when to commit
or roll back, so a multi-step operation stays one transaction.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from .models import InventoryUnit, Sale, SaleLine, User
from .models.inventory import STATE_AVAILABLE, STATE_SOLD
from .services.concurrency import lock_for_update
from .time_utils import utcnow


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup."""
        if not email:
            return None
        return self.db.query(User).filter(
            func.lower(User.email) == email.strip().lower()
        ).first()

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def update_totp_secret(self, email: str, secret: Optional[str]) -> bool:
        """Set or clear the TOTP secret. Returns False when no user matches."""
        user = self.find_by_email(email)
        if user is None:
            return False
        user.totp_secret = secret
        user.totp_last_step = None
        return True

    def record_totp_step(self, user: User, step: int) -> None:
        user.totp_last_step = step

    def touch_login(self, user: User) -> None:
        user.last_login_at = utcnow()


class InventoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def count_available(self, producto: str) -> int:
        return self.db.query(func.count(InventoryUnit.id)).filter(
            InventoryUnit.producto == producto,
            InventoryUnit.estado == STATE_AVAILABLE,
        ).scalar() or 0

    def select_oldest_available(self, producto: str, limit: int) -> List[int]:
        """Ids of the `limit` oldest available units (FIFO), row-locked where supported."""
        query = self.db.query(InventoryUnit.id).filter(
            InventoryUnit.producto == producto,
            InventoryUnit.estado == STATE_AVAILABLE,
        ).order_by(InventoryUnit.fecha.asc(), InventoryUnit.id.asc()).limit(limit)
        return [row.id for row in lock_for_update(query).all()]

    def mark_sold(self, unit_ids: Iterable[int], sale_id: int, annotation: str) -> int:
        """
        Flip units to vendido only if they are still disponible.

        Returns the number of rows that changed; fewer than len(unit_ids)
        means another transaction took some of them.
        """
        unit_ids = list(unit_ids)
        if not unit_ids:
            return 0
        result = self.db.execute(
            update(InventoryUnit)
            .where(InventoryUnit.id.in_(unit_ids), InventoryUnit.estado == STATE_AVAILABLE)
            .values(
                estado=STATE_SOLD,
                sale_id=sale_id,
                tipo_movimiento="salida por venta",
                observaciones=annotation,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def insert_units(self, producto: str, count: int, annotation: str,
                     order_id: Optional[int] = None, fecha=None) -> int:
        fecha = fecha or utcnow()
        self.db.add_all([
            InventoryUnit(
                producto=producto,
                estado=STATE_AVAILABLE,
                fecha=fecha,
                tipo_movimiento="ingreso por orden",
                observaciones=annotation,
                order_id=order_id,
            )
            for _ in range(count)
        ])
        self.db.flush()
        return count

    def select_sold_for_sale(self, producto: str, sale_id: int, limit: int,
                             exclude_ids: Iterable[int] = ()) -> List[int]:
        """Units already sold under `sale_id`, oldest first."""
        query = self.db.query(InventoryUnit.id).filter(
            InventoryUnit.producto == producto,
            InventoryUnit.estado == STATE_SOLD,
            InventoryUnit.sale_id == sale_id,
        )
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            query = query.filter(InventoryUnit.id.notin_(exclude_ids))
        query = query.order_by(InventoryUnit.fecha.asc(), InventoryUnit.id.asc()).limit(limit)
        return [row.id for row in query.all()]

    def release_sale(self, sale_id: int, restock: bool, annotation: str) -> int:
        """Detach units from a deleted sale, optionally putting them back on sale."""
        values = {"sale_id": None, "updated_at": utcnow()}
        if restock:
            values.update(
                estado=STATE_AVAILABLE,
                tipo_movimiento="reingreso por venta eliminada",
                observaciones=annotation,
            )
        result = self.db.execute(
            update(InventoryUnit)
            .where(InventoryUnit.sale_id == sale_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def available_summary(self) -> List[Dict]:
        rows = self.db.query(
            InventoryUnit.producto, func.count(InventoryUnit.id)
        ).filter(
            InventoryUnit.estado == STATE_AVAILABLE
        ).group_by(InventoryUnit.producto).order_by(InventoryUnit.producto).all()
        return [{"producto": producto, "cantidad": cantidad} for producto, cantidad in rows]

    def count_by_state(self, producto: str) -> Dict[str, int]:
        rows = self.db.query(InventoryUnit.estado, func.count(InventoryUnit.id)).filter(
            InventoryUnit.producto == producto
        ).group_by(InventoryUnit.estado).all()
        counts = {STATE_AVAILABLE: 0, STATE_SOLD: 0}
        counts.update({estado: cantidad for estado, cantidad in rows})
        return counts


class SaleRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, sale_id: int) -> Optional[Sale]:
        return self.db.get(Sale, sale_id)

    def create_sale(self, fecha) -> Sale:
        sale = Sale(fecha=fecha, total=0)
        self.db.add(sale)
        self.db.flush()
        return sale

    def add_line(self, sale_id: int, unit_id: int, unit_cost: int) -> SaleLine:
        line = SaleLine(sale_id=sale_id, inventory_unit_id=unit_id, costo_unitario=unit_cost)
        self.db.add(line)
        return line

    def set_total(self, sale: Sale, total: int) -> None:
        sale.total = total

    def delete_lines(self, sale_id: int) -> int:
        return self.db.query(SaleLine).filter(
            SaleLine.sale_id == sale_id
        ).delete(synchronize_session=False)

    def delete_sale(self, sale: Sale) -> None:
        self.db.delete(sale)

    def sum_lines(self, sale_id: int) -> int:
        return self.db.query(func.coalesce(func.sum(SaleLine.costo_unitario), 0)).filter(
            SaleLine.sale_id == sale_id
        ).scalar()

    def list_sales_with_lines(self) -> List[Dict]:
        """
        Flat rows, newest sale first. Sales without lines appear once with
        producto/costo_unitario set to None.
        """
        rows = self.db.query(
            Sale.id, Sale.total, Sale.fecha, SaleLine.id, SaleLine.costo_unitario, InventoryUnit.producto
        ).outerjoin(
            SaleLine, SaleLine.sale_id == Sale.id
        ).outerjoin(
            InventoryUnit, InventoryUnit.id == SaleLine.inventory_unit_id
        ).order_by(Sale.id.desc(), SaleLine.id.asc()).all()

        return [
            {
                "sale_id": sale_id,
                "total": total,
                "fecha": fecha,
                "line_id": line_id,
                "costo_unitario": costo,
                "producto": producto,
            }
            for sale_id, total, fecha, line_id, costo, producto in rows
        ]
