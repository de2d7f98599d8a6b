"""
Sales Service - selling inventory units

WHY: A sale consumes specific inventory units. The stock check and the
reservation must be one indivisible step per call, otherwise two
concurrent sales can both pass the check against the same units.

Each public operation is a single transaction:
- SQLite: BEGIN IMMEDIATE takes the write lock before the first read
- Other engines: SELECT ... FOR UPDATE on the selected units
- mark_sold() only flips rows still 'disponible'; a short count aborts
Any failure rolls back everything written by the call.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..repositories import InventoryRepository, SaleRepository
from viba.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .concurrency import begin_write, run_with_retry
from .errors import (
    InsufficientInventory,
    InsufficientUnits,
    NotFound,
    OperationTimeout,
    ValidationError,
)


logger = logging.getLogger(__name__)

# Fixed catalog: product -> unit price
PRICE_TABLE = {
    "arrachera": 320,
    "ribeye": 450,
    "tomahawk": 600,
    "diezmillo": 280,
}


@dataclass
class SaleRequestLine:
    producto: str
    cantidad: int


@dataclass
class SaleEditLine:
    nombre: str
    cantidad: int
    costo_unitario: int


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_sale_lines(productos) -> list[SaleRequestLine]:
    """Validate [{producto, cantidad}] against the catalog."""
    if not isinstance(productos, list) or not productos:
        raise ValidationError("Se requiere un array de productos y cantidades.")

    lines = []
    for index, item in enumerate(productos):
        if not isinstance(item, dict):
            raise ValidationError("Cada producto debe tener nombre y cantidad numérica.", details={"index": index})
        producto = item.get("producto")
        cantidad = item.get("cantidad")
        if not isinstance(producto, str) or not producto.strip() or not _is_int(cantidad):
            raise ValidationError("Cada producto debe tener nombre y cantidad numérica.", details={"index": index})
        if cantidad <= 0:
            raise ValidationError("La cantidad debe ser mayor a cero.", details={"index": index})

        normalized = producto.strip().lower()
        if normalized not in PRICE_TABLE:
            raise ValidationError(
                f"Producto no reconocido: {producto}",
                details={"index": index, "catalogo": sorted(PRICE_TABLE)},
            )
        lines.append(SaleRequestLine(producto=normalized, cantidad=cantidad))
    return lines


def parse_edit_lines(productos) -> list[SaleEditLine]:
    """Validate [{nombre, cantidad, costo_unitario}] for a sale edit."""
    if not isinstance(productos, list) or not productos:
        raise ValidationError("Se requiere una lista de productos")

    lines = []
    for index, item in enumerate(productos):
        if not isinstance(item, dict):
            raise ValidationError("Producto inválido", details={"index": index})
        nombre = item.get("nombre")
        cantidad = item.get("cantidad")
        costo = item.get("costo_unitario")
        if not isinstance(nombre, str) or not nombre.strip():
            raise ValidationError("Cada producto requiere nombre", details={"index": index})
        if not _is_int(cantidad) or cantidad <= 0:
            raise ValidationError("La cantidad debe ser un entero positivo", details={"index": index})
        if not _is_int(costo) or costo < 0:
            raise ValidationError("costo_unitario debe ser un entero no negativo", details={"index": index})
        lines.append(SaleEditLine(nombre=nombre.strip().lower(), cantidad=cantidad, costo_unitario=costo))
    return lines


def aggregate_quantities(lines) -> "OrderedDict[str, int]":
    totals: OrderedDict[str, int] = OrderedDict()
    for line in lines:
        totals[line.producto] = totals.get(line.producto, 0) + line.cantidad
    return totals


class _Deadline:
    def __init__(self, seconds: float | None):
        self.expires_at = None if not seconds else time.monotonic() + seconds

    def check(self) -> None:
        if self.expires_at is not None and time.monotonic() > self.expires_at:
            raise OperationTimeout("La operación excedió el tiempo límite")


class SaleProcessor:
    def __init__(
        self,
        db: Session,
        inventory: InventoryRepository,
        sales: SaleRepository,
        timeout_seconds: float | None = None,
        prices: dict | None = None,
    ):
        self.db = db
        self.inventory = inventory
        self.sales = sales
        self.timeout_seconds = timeout_seconds
        self.prices = prices or PRICE_TABLE

    def sell_products(self, productos, fecha=None) -> dict:
        """
        Sell [{producto, cantidad}] from available stock, oldest units first.

        Returns {"id_venta": ..., "total": ...}.
        """
        lines = parse_sale_lines(productos)
        requested = aggregate_quantities(lines)
        sale_date = self._parse_fecha(fecha)
        # One budget across all retry attempts
        deadline = _Deadline(self.timeout_seconds)

        def _op():
            deadline.check()
            begin_write(self.db)

            shortages = []
            for producto, cantidad in requested.items():
                available = self.inventory.count_available(producto)
                if available < cantidad:
                    shortages.append({"producto": producto, "solicitado": cantidad, "disponible": available})
            if shortages:
                raise InsufficientInventory(
                    "No hay suficiente inventario para completar la venta.",
                    details={"productos": shortages},
                )

            sale = self.sales.create_sale(sale_date)
            annotation = f"Vendido en venta #{sale.id}"
            total = 0

            for line in lines:
                deadline.check()
                unit_ids = self.inventory.select_oldest_available(line.producto, line.cantidad)
                if len(unit_ids) < line.cantidad:
                    raise InsufficientInventory(f"Inventario insuficiente para {line.producto}")
                if self.inventory.mark_sold(unit_ids, sale.id, annotation) != len(unit_ids):
                    raise InsufficientInventory(f"Inventario insuficiente para {line.producto}")

                price = self.prices[line.producto]
                for unit_id in unit_ids:
                    self.sales.add_line(sale.id, unit_id, price)
                    total += price

            self.sales.set_total(sale, total)
            deadline.check()
            self.db.commit()
            return {"id_venta": sale.id, "total": total}

        result = run_with_retry(self.db, _op)
        logger.info("Sale %s recorded, total=%s", result["id_venta"], result["total"])
        return result

    def get_sales(self) -> list[dict]:
        """All sales with their lines, newest first."""
        grouped: OrderedDict[int, dict] = OrderedDict()
        for row in self.sales.list_sales_with_lines():
            sale = grouped.get(row["sale_id"])
            if sale is None:
                sale = grouped[row["sale_id"]] = {
                    "id": row["sale_id"],
                    "total": row["total"],
                    "fecha": to_utc_z(row["fecha"]),
                    "productos": [],
                }
            if row["line_id"] is not None:
                sale["productos"].append({
                    "nombre": row["producto"],
                    "costo_unitario": row["costo_unitario"],
                })
        return list(grouped.values())

    def update_sale(self, sale_id: int, productos) -> int:
        """
        Replace the lines of a sale with units already sold under it.

        Never touches available stock. Returns the new total.
        """
        lines = parse_edit_lines(productos)
        deadline = _Deadline(self.timeout_seconds)

        def _op():
            deadline.check()
            begin_write(self.db)

            sale = self.sales.get(sale_id)
            if sale is None:
                raise NotFound(f"Venta {sale_id} no encontrada")

            self.sales.delete_lines(sale_id)

            used: list[int] = []
            total = 0
            for line in lines:
                deadline.check()
                unit_ids = self.inventory.select_sold_for_sale(line.nombre, sale_id, line.cantidad, exclude_ids=used)
                if len(unit_ids) < line.cantidad:
                    raise InsufficientUnits(
                        f"No hay suficientes unidades de {line.nombre} vendidas en esta venta.",
                        details={"producto": line.nombre, "solicitado": line.cantidad, "disponible": len(unit_ids)},
                    )
                for unit_id in unit_ids:
                    self.sales.add_line(sale_id, unit_id, line.costo_unitario)
                    total += line.costo_unitario
                used.extend(unit_ids)

            self.sales.set_total(sale, total)
            deadline.check()
            self.db.commit()
            return total

        return run_with_retry(self.db, _op)

    def delete_sale(self, sale_id: int, restock: bool = False) -> int:
        """
        Remove a sale and its lines.

        By default the units stay 'vendido' (the sale is struck from the
        ledger, stock is not returned); restock=True puts them back on sale.
        Returns the number of units released.
        """
        def _op():
            begin_write(self.db)
            sale = self.sales.get(sale_id)
            if sale is None:
                raise NotFound(f"Venta {sale_id} no encontrada")

            self.sales.delete_lines(sale_id)
            released = self.inventory.release_sale(
                sale_id, restock=restock, annotation=f"Venta eliminada #{sale_id}",
            )
            self.sales.delete_sale(sale)
            self.db.commit()
            return released

        released = run_with_retry(self.db, _op)
        logger.info("Sale %s deleted (restock=%s, units=%s)", sale_id, restock, released)
        return released

    @staticmethod
    def _parse_fecha(fecha):
        if fecha is not None and not isinstance(fecha, str):
            raise ValidationError("fecha debe ser una fecha ISO-8601")
        try:
            parsed = parse_iso_datetime(fecha)
        except ValueError:
            raise ValidationError("fecha debe ser una fecha ISO-8601")
        # Blank means "now"
        return parsed or utcnow()
