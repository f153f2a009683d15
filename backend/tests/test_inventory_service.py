"""
Inventory ledger tests.

Verifies:
- Recording a movement appends one line and moves on-hand with it
- Sign convention per type, zero changes and negative on-hand are rejected
- Product status is never recomputed by a movement
- Ledger listing filters and ordering
"""

from datetime import datetime

import pytest

from warehouse_edge.models import InventoryTransaction, Product
from warehouse_edge.services import inventory_service, products_service
from warehouse_edge.validation import NotFoundError, ValidationError


class TestRecordTransaction:
    def test_outflow_moves_on_hand(self, seed, db_session):
        tx = inventory_service.record_transaction(
            product_id="prod1",
            type="Outflow",
            quantity_change=-20,
            user="Assembly Line A",
            reason="Production Order #123",
        )

        assert tx.product_name == "Alpha-Core Processor"
        assert tx.warehouse_id == "wh1"
        assert db_session.get(Product, "prod1").quantity == 130

    def test_status_is_not_recomputed(self, seed, db_session):
        inventory_service.record_transaction(
            product_id="prod1", type="Outflow", quantity_change=-140, user="Ops"
        )
        product = db_session.get(Product, "prod1")
        assert product.quantity == 10
        assert product.status == "Available"

    @pytest.mark.parametrize(
        "tx_type,change",
        [("Inflow", -5), ("Return", -1), ("Outflow", 5), ("Damage", 2), ("Inflow", 0),
         ("Adjustment", 0), ("Teleport", 5), ("Inflow", 2.5), ("Inflow", True)],
    )
    def test_rejected_changes_write_nothing(self, seed, db_session, tx_type, change):
        with pytest.raises(ValidationError):
            inventory_service.record_transaction(
                product_id="prod1", type=tx_type, quantity_change=change, user="Ops"
            )
        assert db_session.query(InventoryTransaction).count() == 0
        assert db_session.get(Product, "prod1").quantity == 150

    def test_adjustment_may_go_either_way(self, seed, db_session):
        inventory_service.record_transaction(product_id="prod2", type="Adjustment", quantity_change=-5, user="Count")
        inventory_service.record_transaction(product_id="prod2", type="Adjustment", quantity_change=2, user="Count")
        assert db_session.get(Product, "prod2").quantity == 32

    def test_cannot_go_below_zero(self, seed, db_session):
        with pytest.raises(ValidationError, match="below zero"):
            inventory_service.record_transaction(
                product_id="prod2", type="Outflow", quantity_change=-36, user="Ops"
            )
        assert db_session.get(Product, "prod2").quantity == 35
        assert db_session.query(InventoryTransaction).count() == 0

    def test_unknown_product(self, seed):
        with pytest.raises(NotFoundError):
            inventory_service.record_transaction(
                product_id="missing", type="Inflow", quantity_change=1, user="Ops"
            )

    def test_user_required(self, seed):
        with pytest.raises(ValidationError):
            inventory_service.record_transaction(
                product_id="prod1", type="Inflow", quantity_change=1, user="  "
            )

    def test_occurred_at_accepts_iso_with_offset(self, seed):
        tx = inventory_service.record_transaction(
            product_id="prod1",
            type="Inflow",
            quantity_change=1,
            user="Ops",
            occurred_at="2024-07-25T12:00:00+02:00",
        )
        assert tx.occurred_at == datetime(2024, 7, 25, 10, 0, 0)

    def test_bad_occurred_at(self, seed):
        with pytest.raises(ValidationError):
            inventory_service.record_transaction(
                product_id="prod1", type="Inflow", quantity_change=1, user="Ops", occurred_at="yesterday"
            )

    def test_ledger_reconciles_with_on_hand(self, seed, db_session):
        created = products_service.create_product(
            patch={"sku": "NEW-1", "name": "Widget", "category": "Electronics",
                   "warehouse_id": "wh1", "quantity": 40, "reorder_level": 10},
            user="Alice Admin",
        )
        for tx_type, change in [("Inflow", 25), ("Outflow", -30), ("Damage", -4), ("Return", 2), ("Adjustment", -1)]:
            inventory_service.record_transaction(
                product_id=created.id, type=tx_type, quantity_change=change, user="Ops"
            )

        lines = inventory_service.list_transactions(product_id=created.id)
        assert sum(tx.quantity_change for tx in lines) == db_session.get(Product, created.id).quantity == 32


class TestListTransactions:
    def _ledger(self):
        for when, tx_type, change, user in [
            ("2024-07-18T09:00:00Z", "Inflow", 100, "Supplier XYZ"),
            ("2024-07-22T15:30:00Z", "Outflow", -20, "Assembly Line A"),
            ("2024-07-25T10:00:00Z", "Outflow", -5, "Assembly Line A"),
        ]:
            inventory_service.record_transaction(
                product_id="prod1", type=tx_type, quantity_change=change, user=user, occurred_at=when
            )
        inventory_service.record_transaction(
            product_id="prod3", type="Inflow", quantity_change=10, user="Supplier XYZ",
            occurred_at="2024-07-20T00:00:00Z",
        )

    def test_newest_first(self, seed):
        self._ledger()
        rows = inventory_service.list_transactions()
        assert [tx.occurred_at.day for tx in rows] == [25, 22, 20, 18]

    def test_filters(self, seed):
        self._ledger()
        assert len(inventory_service.list_transactions(type="Outflow")) == 2
        assert len(inventory_service.list_transactions(warehouse_id="wh2")) == 1
        assert len(inventory_service.list_transactions(user="Supplier XYZ")) == 2
        assert len(inventory_service.list_transactions(start="2024-07-20", end="2024-07-22")) == 2
        assert len(inventory_service.list_transactions(limit=1)) == 1

    def test_inventory_summary(self, seed):
        summary = inventory_service.get_inventory_summary("prod2")
        assert summary["quantity"] == 35
        assert summary["reorder_level"] == 25
        assert summary["status"] == "Low Stock"
