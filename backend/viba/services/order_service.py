# Overview: Purchase orders; completing one brings its units into inventory.

from sqlalchemy.orm import Session

from ..models import Order, OrderLine
from ..models.orders import ORDER_COMPLETED, ORDER_PENDING
from ..repositories import InventoryRepository, UserRepository
from viba.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import NotFound, ValidationError


def _parse_date(value, field: str, required: bool):
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} debe ser una fecha ISO-8601")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} debe ser una fecha ISO-8601")
    if parsed is None:
        if required:
            raise ValidationError(f"{field} es obligatorio")
        return utcnow()
    return parsed


class OrderService:
    def __init__(self, db: Session, users: UserRepository, inventory: InventoryRepository):
        self.db = db
        self.users = users
        self.inventory = inventory

    def create_order(self, correo_solicita, correo_provee, productos, fecha_emision) -> Order:
        if not correo_solicita or not correo_provee or not isinstance(productos, list) or not productos:
            raise ValidationError(
                "Faltan campos necesarios: correo_solicita, correo_provee, productos o fecha_emision"
            )
        emitted = _parse_date(fecha_emision, "fecha_emision", required=True)

        requester = self.users.find_by_email(correo_solicita)
        if requester is None:
            raise NotFound(f"Correo del solicitante no encontrado: {correo_solicita}")
        supplier = self.users.find_by_email(correo_provee)
        if supplier is None:
            raise NotFound(f"Correo del proveedor no encontrado: {correo_provee}")

        lines = []
        for index, item in enumerate(productos):
            producto = item.get("producto") if isinstance(item, dict) else None
            cantidad = item.get("cantidad") if isinstance(item, dict) else None
            precio = item.get("precio") if isinstance(item, dict) else None
            if (
                not isinstance(producto, str) or not producto.strip()
                or not isinstance(cantidad, int) or isinstance(cantidad, bool) or cantidad <= 0
                or not isinstance(precio, int) or isinstance(precio, bool) or precio < 0
            ):
                raise ValidationError(
                    "Cada producto debe tener nombre, cantidad y precio",
                    details={"index": index},
                )
            lines.append(OrderLine(producto=producto.strip().lower(), cantidad=cantidad, precio=precio))

        order = Order(
            requester_id=requester.id,
            supplier_id=supplier.id,
            estado=ORDER_PENDING,
            fecha_emision=emitted,
        )
        order.lines = lines
        self.db.add(order)
        self.db.commit()
        return order

    def complete_order(self, order_id: int, fecha_recepcion=None) -> int:
        """
        Mark an order completed and insert one available unit per unit ordered.

        Returns the number of units inserted.
        """
        received = _parse_date(fecha_recepcion, "fecha_recepcion", required=False)

        def _op():
            begin_write(self.db)
            order = lock_for_update(self.db.query(Order).filter(Order.id == order_id)).first()
            if order is None:
                raise NotFound(f"Orden {order_id} no encontrada")
            if order.estado == ORDER_COMPLETED:
                raise ValidationError(f"La orden {order_id} ya fue completada")
            if not order.lines:
                raise ValidationError(f"No hay productos asociados a la orden {order_id}")

            order.estado = ORDER_COMPLETED
            order.fecha_recepcion = received

            inserted = 0
            now = utcnow()
            for line in order.lines:
                inserted += self.inventory.insert_units(
                    line.producto,
                    line.cantidad,
                    f"Orden completada: #{order.id}",
                    order_id=order.id,
                    fecha=now,
                )
            self.db.commit()
            return inserted

        return run_with_retry(self.db, _op)
