from __future__ import annotations

from ..extensions import db
from warehouse_edge.time_utils import to_utc_z, utcnow
from .ids import new_id


PRODUCT_STATUS_AVAILABLE = "Available"
PRODUCT_STATUS_LOW_STOCK = "Low Stock"
PRODUCT_STATUS_OUT_OF_STOCK = "Out of Stock"
PRODUCT_STATUS_DAMAGED = "Damaged"

PRODUCT_STATUSES = (
    PRODUCT_STATUS_AVAILABLE,
    PRODUCT_STATUS_LOW_STOCK,
    PRODUCT_STATUS_OUT_OF_STOCK,
    PRODUCT_STATUS_DAMAGED,
)

TX_INFLOW = "Inflow"
TX_OUTFLOW = "Outflow"
TX_RETURN = "Return"
TX_DAMAGE = "Damage"
TX_ADJUSTMENT = "Adjustment"
TX_INITIAL = "Initial"

TRANSACTION_TYPES = (TX_INFLOW, TX_OUTFLOW, TX_RETURN, TX_DAMAGE, TX_ADJUSTMENT, TX_INITIAL)

# Sign convention on quantity_change
INBOUND_TYPES = frozenset({TX_INFLOW, TX_RETURN, TX_INITIAL})
OUTBOUND_TYPES = frozenset({TX_OUTFLOW, TX_DAMAGE})


class Warehouse(db.Model):
    __tablename__ = "warehouses"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("wh"))
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "location": self.location}


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("cat"))
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


class Product(db.Model):
    """
    Product master data.

    STATUS DESIGN DECISION:
    `status` is authoritative and set by a person (or an import row). It is
    NOT recomputed from quantity vs reorder_level when the ledger moves, so
    a product can read "Available" while sitting under its reorder level.
    Reports treat the two signals independently (see aggregation_service.low_stock).

    `category` is a name reference (Category.name), matching how
    DepartmentEmployee.category_access is expressed.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_warehouse", "category", "warehouse_id"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("prod"))
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, index=True)
    warehouse_id = db.Column(db.String(64), db.ForeignKey("warehouses.id"), nullable=False, index=True)

    # On-hand quantity; moved only through the ledger once the product exists
    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(32), nullable=False, default=PRODUCT_STATUS_AVAILABLE)
    description = db.Column(db.Text, nullable=True)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    warehouse = db.relationship("Warehouse", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "warehouse_id": self.warehouse_id,
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "status": self.status,
            "description": self.description,
            "last_updated": to_utc_z(self.last_updated),
        }


class InventoryTransaction(db.Model):
    """
    One ledger line. Append-only: rows are never updated or deleted.

    product_name is a snapshot taken when the line is written so that
    historical reports keep the name the product had at the time.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_invtx_type_occurred", "type", "occurred_at"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("txn"))

    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    type = db.Column(db.String(32), nullable=False, index=True)

    # Positive for Inflow/Return/Initial, negative for Outflow/Damage
    quantity_change = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user = db.Column(db.String(255), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    warehouse_id = db.Column(db.String(64), db.ForeignKey("warehouses.id"), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity_change": self.quantity_change,
            "occurred_at": to_utc_z(self.occurred_at),
            "user": self.user,
            "reason": self.reason,
            "notes": self.notes,
            "warehouse_id": self.warehouse_id,
        }
