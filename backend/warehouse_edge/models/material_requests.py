from __future__ import annotations

from ..extensions import db
from warehouse_edge.time_utils import to_utc_z, utcnow
from .ids import new_id


REQUEST_STATUS_PENDING = "Pending"
REQUEST_STATUS_APPROVED = "Approved"
REQUEST_STATUS_REJECTED = "Rejected"
REQUEST_STATUS_COMPLETED = "Completed"
REQUEST_STATUS_CANCELLED = "Cancelled"

REQUEST_STATUSES = (
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_COMPLETED,
    REQUEST_STATUS_CANCELLED,
)


class MaterialRequest(db.Model):
    """
    Department request for stock out of the warehouse.

    LIFECYCLE:
    1. PENDING: submitted by a requester, editable/cancellable by them
    2. APPROVED / REJECTED: manager or admin decision (approver_* set)
    3. CANCELLED: withdrawn by the requester (approver_* stay empty)
    4. COMPLETED: fulfilment of an APPROVED request

    Requests are never deleted; cancellation is a status.
    version_id is bumped by every mutation so stale writers can be detected.
    """
    __tablename__ = "material_requests"
    __table_args__ = (
        db.Index("ix_mreq_status_submitted", "status", "submission_date"),
        db.Index("ix_mreq_requester_submitted", "requester_id", "submission_date"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("mr"))

    requester_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    requester_name = db.Column(db.String(255), nullable=False)
    department_category = db.Column(db.String(128), nullable=False, index=True)

    reason_for_request = db.Column(db.Text, nullable=False)
    requested_date = db.Column(db.DateTime(timezone=True), nullable=False)
    submission_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING, index=True)

    approver_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    approver_name = db.Column(db.String(255), nullable=True)
    approver_notes = db.Column(db.Text, nullable=True)
    action_date = db.Column(db.DateTime(timezone=True), nullable=True)

    completed_by_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "MaterialRequestItem",
        order_by="MaterialRequestItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<MaterialRequest id={self.id!r} status={self.status!r} requester_id={self.requester_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "department_category": self.department_category,
            "items": [item.to_dict() for item in self.items],
            "reason_for_request": self.reason_for_request,
            "requested_date": to_utc_z(self.requested_date),
            "submission_date": to_utc_z(self.submission_date),
            "status": self.status,
            "approver_id": self.approver_id,
            "approver_name": self.approver_name,
            "approver_notes": self.approver_notes,
            "action_date": to_utc_z(self.action_date) if self.action_date else None,
            "completed_by_id": self.completed_by_id,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }


class MaterialRequestItem(db.Model):
    __tablename__ = "material_request_items"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(64), db.ForeignKey("material_requests.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_mreq_items_quantity_positive"),
    )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }
