"""
Tests for the sale processor.

Every failing call must leave inventory, sales and sale lines exactly as
they were before the call.
"""

import time
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from viba.models import InventoryUnit, Sale, SaleLine
from viba.models.inventory import STATE_AVAILABLE, STATE_SOLD
from viba.repositories import InventoryRepository, SaleRepository
from viba.services.errors import (
    InsufficientInventory,
    InsufficientUnits,
    NotFound,
    OperationTimeout,
    ValidationError,
)
from viba.services.sales_service import SaleProcessor, aggregate_quantities, parse_sale_lines
from viba.time_utils import utcnow


@pytest.fixture
def processor(db_session):
    return SaleProcessor(db_session, InventoryRepository(db_session), SaleRepository(db_session))


def _counts(db_session, producto):
    return InventoryRepository(db_session).count_by_state(producto)


def _snapshot(db_session):
    return (
        db_session.query(Sale).count(),
        db_session.query(SaleLine).count(),
        sorted((u.id, u.estado, u.sale_id) for u in db_session.query(InventoryUnit).all()),
    )


class TestParsing:
    def test_names_are_normalized(self):
        lines = parse_sale_lines([{"producto": " RibEye ", "cantidad": 2}])
        assert lines[0].producto == "ribeye"

    @pytest.mark.parametrize("productos, message", [
        (None, "Se requiere un array de productos y cantidades."),
        ([], "Se requiere un array de productos y cantidades."),
        ([{"producto": "ribeye"}], "Cada producto debe tener nombre y cantidad numérica."),
        ([{"producto": "ribeye", "cantidad": "2"}], "Cada producto debe tener nombre y cantidad numérica."),
        ([{"producto": "ribeye", "cantidad": True}], "Cada producto debe tener nombre y cantidad numérica."),
        ([{"producto": "ribeye", "cantidad": 0}], "La cantidad debe ser mayor a cero."),
        ([{"producto": "pollo", "cantidad": 1}], "Producto no reconocido: pollo"),
    ])
    def test_invalid_requests(self, productos, message):
        with pytest.raises(ValidationError) as exc:
            parse_sale_lines(productos)
        assert str(exc.value) == message

    def test_repeated_products_are_aggregated(self):
        lines = parse_sale_lines([
            {"producto": "ribeye", "cantidad": 2},
            {"producto": "arrachera", "cantidad": 1},
            {"producto": "ribeye", "cantidad": 3},
        ])
        assert dict(aggregate_quantities(lines)) == {"ribeye": 5, "arrachera": 1}


class TestSellProducts:
    def test_sell_marks_units_and_totals_at_catalog_price(self, processor, seed_units, db_session):
        seed_units("ribeye", 10)

        result = processor.sell_products([{"producto": "ribeye", "cantidad": 5}])

        assert result["total"] == 2250
        assert _counts(db_session, "ribeye") == {STATE_AVAILABLE: 5, STATE_SOLD: 5}
        sale = db_session.get(Sale, result["id_venta"])
        assert sale.total == 2250
        assert len(sale.lines) == 5
        assert all(line.costo_unitario == 450 for line in sale.lines)
        sold = db_session.query(InventoryUnit).filter_by(estado=STATE_SOLD).all()
        assert {u.sale_id for u in sold} == {sale.id}
        assert all(u.observaciones == f"Vendido en venta #{sale.id}" for u in sold)

    def test_multiple_products_in_one_sale(self, processor, seed_units):
        seed_units("ribeye", 2)
        seed_units("tomahawk", 1)

        result = processor.sell_products([
            {"producto": "ribeye", "cantidad": 2},
            {"producto": "tomahawk", "cantidad": 1},
        ])

        assert result["total"] == 2 * 450 + 600

    def test_unknown_product_changes_nothing(self, processor, seed_units, db_session):
        seed_units("ribeye", 3)
        before = _snapshot(db_session)

        with pytest.raises(ValidationError):
            processor.sell_products([{"producto": "pollo", "cantidad": 1}])

        assert _snapshot(db_session) == before

    def test_insufficient_inventory_changes_nothing(self, processor, seed_units, db_session):
        seed_units("ribeye", 3)
        before = _snapshot(db_session)

        with pytest.raises(InsufficientInventory) as exc:
            processor.sell_products([{"producto": "ribeye", "cantidad": 5}])

        assert str(exc.value) == "No hay suficiente inventario para completar la venta."
        assert exc.value.details["productos"] == [{"producto": "ribeye", "solicitado": 5, "disponible": 3}]
        assert _snapshot(db_session) == before

    def test_one_short_line_aborts_the_whole_sale(self, processor, seed_units, db_session):
        seed_units("ribeye", 5)
        before = _snapshot(db_session)

        with pytest.raises(InsufficientInventory):
            processor.sell_products([
                {"producto": "ribeye", "cantidad": 2},
                {"producto": "tomahawk", "cantidad": 1},
            ])

        assert _snapshot(db_session) == before

    def test_repeated_lines_checked_against_combined_quantity(self, processor, seed_units, db_session):
        seed_units("ribeye", 3)
        before = _snapshot(db_session)

        with pytest.raises(InsufficientInventory):
            processor.sell_products([
                {"producto": "ribeye", "cantidad": 2},
                {"producto": "ribeye", "cantidad": 2},
            ])

        assert _snapshot(db_session) == before

    def test_oldest_units_sold_first(self, processor, seed_units, db_session):
        seed_units("arrachera", 2, fecha=utcnow() - timedelta(days=3))
        seed_units("arrachera", 2)
        oldest = sorted(
            u.id for u in db_session.query(InventoryUnit).order_by(InventoryUnit.fecha).limit(2)
        )

        result = processor.sell_products([{"producto": "arrachera", "cantidad": 2}])

        sold = sorted(u.id for u in db_session.query(InventoryUnit).filter_by(sale_id=result["id_venta"]))
        assert sold == oldest

    def test_timeout_rolls_back(self, db_session, seed_units):
        seed_units("ribeye", 3)
        before = _snapshot(db_session)
        slow = SaleProcessor(
            db_session, InventoryRepository(db_session), SaleRepository(db_session),
            timeout_seconds=1e-9,
        )

        with pytest.raises(OperationTimeout):
            slow.sell_products([{"producto": "ribeye", "cantidad": 1}])

        assert _snapshot(db_session) == before

    def test_retries_share_one_time_budget(self, db_session, seed_units):
        seed_units("ribeye", 3)
        before = _snapshot(db_session)

        class LockedInventory(InventoryRepository):
            calls = 0

            def count_available(self, producto):
                LockedInventory.calls += 1
                time.sleep(0.06)
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        processor = SaleProcessor(
            db_session, LockedInventory(db_session), SaleRepository(db_session),
            timeout_seconds=0.05,
        )

        with pytest.raises(OperationTimeout):
            processor.sell_products([{"producto": "ribeye", "cantidad": 1}])

        # The retry found the budget already spent and stopped before the next attempt
        assert LockedInventory.calls == 1
        assert _snapshot(db_session) == before

    def test_available_plus_sold_is_constant(self, processor, seed_units, db_session):
        seed_units("diezmillo", 6)

        processor.sell_products([{"producto": "diezmillo", "cantidad": 2}])
        processor.sell_products([{"producto": "diezmillo", "cantidad": 3}])
        with pytest.raises(InsufficientInventory):
            processor.sell_products([{"producto": "diezmillo", "cantidad": 2}])

        counts = _counts(db_session, "diezmillo")
        assert counts == {STATE_AVAILABLE: 1, STATE_SOLD: 5}


class TestGetSales:
    def test_sales_listed_newest_first_with_lines(self, processor, seed_units):
        seed_units("ribeye", 3)
        first = processor.sell_products([{"producto": "ribeye", "cantidad": 1}])
        second = processor.sell_products([{"producto": "ribeye", "cantidad": 2}])

        sales = processor.get_sales()

        assert [s["id"] for s in sales] == [second["id_venta"], first["id_venta"]]
        assert sales[0]["total"] == 900
        assert sales[0]["productos"] == [
            {"nombre": "ribeye", "costo_unitario": 450},
            {"nombre": "ribeye", "costo_unitario": 450},
        ]
        assert sales[0]["fecha"].endswith("Z")

    def test_no_sales(self, processor):
        assert processor.get_sales() == []


class TestUpdateSale:
    def test_update_rewrites_lines_and_total(self, processor, seed_units, db_session):
        seed_units("ribeye", 5)
        sale_id = processor.sell_products([{"producto": "ribeye", "cantidad": 3}])["id_venta"]

        total = processor.update_sale(sale_id, [{"nombre": "ribeye", "cantidad": 2, "costo_unitario": 400}])

        assert total == 800
        db_session.expire_all()
        sale = db_session.get(Sale, sale_id)
        assert sale.total == 800
        assert sorted(line.costo_unitario for line in sale.lines) == [400, 400]
        # Never touches available stock
        assert _counts(db_session, "ribeye") == {STATE_AVAILABLE: 2, STATE_SOLD: 3}

    def test_cannot_claim_more_units_than_were_sold(self, processor, seed_units, db_session):
        seed_units("ribeye", 5)
        sale_id = processor.sell_products([{"producto": "ribeye", "cantidad": 2}])["id_venta"]
        before = _snapshot(db_session)

        with pytest.raises(InsufficientUnits) as exc:
            processor.update_sale(sale_id, [{"nombre": "ribeye", "cantidad": 3, "costo_unitario": 450}])

        assert str(exc.value) == "No hay suficientes unidades de ribeye vendidas en esta venta."
        db_session.expire_all()
        assert _snapshot(db_session) == before
        assert db_session.get(Sale, sale_id).total == 900

    def test_cannot_claim_products_from_another_sale(self, processor, seed_units):
        seed_units("ribeye", 1)
        seed_units("tomahawk", 1)
        sale_id = processor.sell_products([{"producto": "ribeye", "cantidad": 1}])["id_venta"]
        processor.sell_products([{"producto": "tomahawk", "cantidad": 1}])

        with pytest.raises(InsufficientUnits):
            processor.update_sale(sale_id, [{"nombre": "tomahawk", "cantidad": 1, "costo_unitario": 600}])

    def test_unknown_sale(self, processor):
        with pytest.raises(NotFound):
            processor.update_sale(999, [{"nombre": "ribeye", "cantidad": 1, "costo_unitario": 450}])

    @pytest.mark.parametrize("line", [
        {"nombre": "ribeye", "cantidad": 1, "costo_unitario": -1},
        {"nombre": "ribeye", "cantidad": 1, "costo_unitario": 4.5},
        {"nombre": "ribeye", "cantidad": 0, "costo_unitario": 450},
        {"cantidad": 1, "costo_unitario": 450},
    ])
    def test_invalid_edit_lines(self, processor, line):
        with pytest.raises(ValidationError):
            processor.update_sale(1, [line])


class TestDeleteSale:
    def test_delete_keeps_units_sold(self, processor, seed_units, db_session):
        seed_units("tomahawk", 2)
        sale_id = processor.sell_products([{"producto": "tomahawk", "cantidad": 2}])["id_venta"]

        released = processor.delete_sale(sale_id)

        assert released == 2
        db_session.expire_all()
        assert db_session.get(Sale, sale_id) is None
        assert db_session.query(SaleLine).count() == 0
        units = db_session.query(InventoryUnit).all()
        assert all(u.estado == STATE_SOLD and u.sale_id is None for u in units)

    def test_delete_with_restock_returns_units(self, processor, seed_units, db_session):
        seed_units("tomahawk", 2)
        sale_id = processor.sell_products([{"producto": "tomahawk", "cantidad": 2}])["id_venta"]

        processor.delete_sale(sale_id, restock=True)

        db_session.expire_all()
        assert _counts(db_session, "tomahawk") == {STATE_AVAILABLE: 2, STATE_SOLD: 0}

    def test_unknown_sale(self, processor):
        with pytest.raises(NotFound):
            processor.delete_sale(12345)
