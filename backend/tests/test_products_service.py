"""
Product catalog tests.
"""

import pytest

from warehouse_edge.models import InventoryTransaction, Product
from warehouse_edge.services import products_service
from warehouse_edge.validation import ConflictError, NotFoundError, ValidationError


def _patch(**overrides):
    patch = {
        "sku": "OFF-PEN-01",
        "name": "Ballpoint Pens (box)",
        "category": "Office Supplies",
        "warehouse_id": "wh1",
        "quantity": 60,
        "reorder_level": 20,
    }
    patch.update(overrides)
    return patch


@pytest.mark.parametrize(
    "quantity,reorder_level,expected",
    [(0, 10, "Out of Stock"), (-1, 0, "Out of Stock"), (10, 10, "Low Stock"), (11, 10, "Available")],
)
def test_derive_status(quantity, reorder_level, expected):
    assert products_service.derive_status(quantity, reorder_level) == expected


class TestCreateProduct:
    def test_opening_quantity_written_as_initial(self, warehouse, db_session):
        product = products_service.create_product(patch=_patch(), user="Alice Admin")

        assert product.status == "Available"
        lines = db_session.query(InventoryTransaction).filter_by(product_id=product.id).all()
        assert len(lines) == 1
        assert lines[0].type == "Initial"
        assert lines[0].quantity_change == 60
        assert lines[0].user == "Alice Admin"

    def test_zero_quantity_has_no_ledger_line(self, warehouse, db_session):
        product = products_service.create_product(patch=_patch(quantity=0))
        assert product.status == "Out of Stock"
        assert db_session.query(InventoryTransaction).count() == 0

    def test_explicit_status_is_kept(self, warehouse):
        product = products_service.create_product(patch=_patch(quantity=5, status="Damaged"))
        assert product.status == "Damaged"

    def test_duplicate_sku(self, seed):
        with pytest.raises(ConflictError):
            products_service.create_product(patch=_patch(sku="AC-P-001"))

    def test_duplicate_id(self, seed):
        with pytest.raises(ConflictError):
            products_service.create_product(patch=_patch(id="prod1"))

    def test_unknown_warehouse(self, warehouse):
        with pytest.raises(NotFoundError):
            products_service.create_product(patch=_patch(warehouse_id="wh99"))

    def test_unknown_category(self, warehouse, db_session):
        with pytest.raises(NotFoundError):
            products_service.create_product(patch=_patch(category="Office Supplys"))
        assert db_session.query(Product).count() == 0

    def test_category_name_is_canonicalized(self, warehouse):
        product = products_service.create_product(patch=_patch(category="office supplies"))
        assert product.category == "Office Supplies"

    @pytest.mark.parametrize("field,value", [("quantity", -1), ("reorder_level", -5), ("status", "Lost")])
    def test_rule_violations(self, warehouse, field, value):
        with pytest.raises(ValidationError):
            products_service.create_product(patch=_patch(**{field: value}))


class TestUpdateProduct:
    def test_update_fields(self, seed, db_session):
        updated = products_service.update_product(
            product_id="prod2", patch={"reorder_level": 40, "status": "Available"}
        )
        assert updated.reorder_level == 40
        assert updated.status == "Available"
        assert db_session.get(Product, "prod2").quantity == 35

    def test_quantity_is_not_writable(self, seed):
        with pytest.raises(ValidationError):
            products_service.update_product(product_id="prod2", patch={"quantity": 999})

    def test_sku_conflict(self, seed):
        with pytest.raises(ConflictError):
            products_service.update_product(product_id="prod2", patch={"sku": "AC-P-001"})

    def test_unknown_product(self, seed):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id="nope", patch={"name": "x"})

    def test_category_must_exist(self, seed, db_session):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id="prod2", patch={"category": "Electronix"})
        db_session.rollback()
        assert db_session.get(Product, "prod2").category == "Electronics"

        moved = products_service.update_product(product_id="prod2", patch={"category": "raw materials"})
        assert moved.category == "Raw Materials"


class TestListProducts:
    def test_filters(self, seed):
        assert [p.id for p in products_service.list_products(category="Electronics")] == ["prod1", "prod2"]
        assert [p.id for p in products_service.list_products(warehouse_id="wh2")] == ["prod3"]
        assert [p.id for p in products_service.list_products(status="Low Stock")] == ["prod2"]

    def test_category_visibility(self, seed):
        assert [p.id for p in products_service.list_products(categories={"Raw Materials"})] == ["prod3"]
        assert products_service.list_products(categories=set()) == []
        assert len(products_service.list_products(categories=None)) == 3
