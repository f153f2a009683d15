"""
Bulk import tests.

Verifies:
- A batch with any bad row writes nothing and reports every bad row
- Good batches post through the catalog and ledger operations
- CSV / JSON / XLSX uploads are parsed into row dicts
"""

import io
import json

import pytest
from openpyxl import Workbook

from warehouse_edge.models import InventoryTransaction, Product
from warehouse_edge.services import import_service
from warehouse_edge.services.import_service import BulkImportError
from warehouse_edge.services.permission_service import PermissionDeniedError


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProductImport:
    def test_creates_and_updates(self, seed, db_session):
        rows = [
            {"sku": "OFF-PEN-01", "name": "Pens", "category": "Office Supplies",
             "warehouse_id": "wh1", "quantity": "60", "reorder_level": "20"},
            {"sku": "BS-RM-016", "name": "Beta-Series RAM Module", "category": "Electronics",
             "warehouseId": "wh1", "quantity": "40", "reorderLevel": "30"},
        ]
        result = import_service.import_rows("products", rows, seed["users"]["admin"])

        assert result["posted"] is True
        assert result["created"] == 1
        assert result["updated"] == 1
        assert result["errors"] == []

        pens = db_session.query(Product).filter_by(sku="OFF-PEN-01").one()
        assert pens.quantity == 60
        assert pens.status == "Available"

        ram = db_session.get(Product, "prod2")
        assert ram.quantity == 40
        assert ram.reorder_level == 30
        adjustment = db_session.query(InventoryTransaction).filter_by(product_id="prod2").one()
        assert adjustment.type == "Adjustment"
        assert adjustment.quantity_change == 5
        assert adjustment.user == "Alice Admin"

    def test_bad_batch_writes_nothing(self, seed, db_session):
        rows = [
            {"sku": "OK-1", "name": "Fine", "category": "Office Supplies", "warehouse_id": "wh1", "quantity": 3},
            {"sku": "", "name": "No SKU", "category": "Office Supplies", "warehouse_id": "wh1"},
            {"sku": "BAD-Q", "name": "Neg", "category": "Office Supplies", "warehouse_id": "wh1", "quantity": -4},
            {"sku": "BAD-WH", "name": "Nowhere", "category": "Office Supplies", "warehouse_id": "wh99"},
            {"sku": "OK-1", "name": "Dup", "category": "Office Supplies", "warehouse_id": "wh1"},
            {"sku": "BAD-N", "name": "Frac", "category": "Office Supplies", "warehouse_id": "wh1", "quantity": "2.5"},
        ]
        result = import_service.import_rows("products", rows, seed["users"]["manager"])

        assert result["posted"] is False
        assert [e["row"] for e in result["errors"]] == [2, 3, 4, 5, 6]
        assert db_session.query(Product).count() == 3
        assert db_session.query(InventoryTransaction).count() == 0

    def test_unknown_category_rejects_batch(self, seed, db_session):
        rows = [
            {"sku": "OK-2", "name": "Fine", "category": "Office Supplies", "warehouse_id": "wh1"},
            {"sku": "TYPO-1", "name": "Typo", "category": "Electroncs", "warehouse_id": "wh1"},
        ]
        result = import_service.import_rows("products", rows, seed["users"]["admin"])

        assert result["posted"] is False
        assert [e["row"] for e in result["errors"]] == [2]
        assert db_session.query(Product).filter_by(sku="OK-2").first() is None

    def test_employee_cannot_import(self, seed):
        with pytest.raises(PermissionDeniedError):
            import_service.import_rows("products", [], seed["users"]["charlie"])

    def test_unknown_kind(self, seed):
        with pytest.raises(BulkImportError):
            import_service.import_rows("widgets", [], seed["users"]["admin"])


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactionImport:
    def test_posts_ledger_lines(self, seed, db_session):
        rows = [
            {"product_id": "prod1", "type": "Outflow", "quantity_change": "-20",
             "date": "2024-07-22T15:30:00Z", "user": "Assembly Line A", "reason": "Production Order #123"},
            {"sku": "GF-R-BLU", "type": "Inflow", "quantity_change": "50"},
        ]
        result = import_service.import_rows("transactions", rows, seed["users"]["manager"])

        assert result["posted"] is True
        assert result["recorded"] == 2
        assert db_session.get(Product, "prod1").quantity == 130
        assert db_session.get(Product, "prod3").quantity == 50

        inflow = db_session.query(InventoryTransaction).filter_by(product_id="prod3").one()
        assert inflow.user == "Bob Manager"

    def test_running_balance_checked_across_batch(self, seed, db_session):
        rows = [
            {"product_id": "prod2", "type": "Outflow", "quantity_change": -30},
            {"product_id": "prod2", "type": "Outflow", "quantity_change": -10},
        ]
        result = import_service.import_rows("transactions", rows, seed["users"]["admin"])

        assert result["posted"] is False
        assert [e["row"] for e in result["errors"]] == [2]
        assert db_session.get(Product, "prod2").quantity == 35
        assert db_session.query(InventoryTransaction).count() == 0

    @pytest.mark.parametrize(
        "row",
        [
            {"product_id": "prod1", "type": "Inflow", "quantity_change": -3},
            {"product_id": "prod1", "type": "Outflow", "quantity_change": 3},
            {"product_id": "prod1", "type": "Teleport", "quantity_change": 3},
            {"product_id": "prod1", "type": "Inflow", "quantity_change": 0},
            {"product_id": "prod1", "type": "Inflow"},
            {"product_id": "missing", "type": "Inflow", "quantity_change": 1},
            {"type": "Inflow", "quantity_change": 1},
            {"product_id": "prod1", "type": "Inflow", "quantity_change": 1, "occurred_at": "someday"},
        ],
    )
    def test_invalid_rows(self, seed, db_session, row):
        result = import_service.import_rows("transactions", [row], seed["users"]["admin"])
        assert result["posted"] is False
        assert result["errors"][0]["row"] == 1
        assert db_session.query(InventoryTransaction).count() == 0


# =============================================================================
# UPLOAD PARSING
# =============================================================================


class TestParseUpload:
    def test_csv(self):
        data = "sku,name,quantity\nA-1,Alpha,3\nB-2,Beta,4\n".encode("utf-8")
        rows = import_service.parse_upload("products.csv", io.BytesIO(data))
        assert rows == [
            {"sku": "A-1", "name": "Alpha", "quantity": "3"},
            {"sku": "B-2", "name": "Beta", "quantity": "4"},
        ]

    def test_json_list_and_wrapper(self):
        payload = [{"sku": "A-1"}]
        assert import_service.parse_upload("rows.json", io.BytesIO(json.dumps(payload).encode())) == payload
        wrapped = io.BytesIO(json.dumps({"rows": payload}).encode())
        assert import_service.parse_upload("rows.json", wrapped) == payload

    def test_xlsx(self):
        wb = Workbook()
        sheet = wb.active
        sheet.append(["product_id", "type", "quantity_change"])
        sheet.append(["prod1", "Inflow", 5])
        sheet.append([None, None, None])
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)

        rows = import_service.parse_upload("ledger.xlsx", buf)
        assert rows == [{"product_id": "prod1", "type": "Inflow", "quantity_change": 5}]

    def test_unsupported_and_broken(self):
        with pytest.raises(BulkImportError):
            import_service.parse_upload("notes.txt", io.BytesIO(b"hello"))
        with pytest.raises(BulkImportError):
            import_service.parse_upload("rows.json", io.BytesIO(b"{not json"))
