from __future__ import annotations

from ..extensions import db
from warehouse_edge.time_utils import to_utc_z, utcnow
from .ids import new_id


NOTIFICATION_CHANNEL_EMAIL = "email"
NOTIFICATION_CHANNEL_SMS = "sms"
NOTIFICATION_CHANNEL_IN_APP = "in-app"

NOTIFICATION_CHANNELS = (
    NOTIFICATION_CHANNEL_EMAIL,
    NOTIFICATION_CHANNEL_SMS,
    NOTIFICATION_CHANNEL_IN_APP,
)


class NotificationSetting(db.Model):
    """
    Low-stock alert rule for one product.

    The rule fires while the product's on-hand quantity is at or below
    `threshold` and the rule is enabled. Delivery over `channel` to
    `recipient` (an address or a role name) happens outside this service.
    """
    __tablename__ = "notification_settings"
    __table_args__ = (
        db.CheckConstraint("threshold >= 0", name="ck_notification_threshold"),
        db.CheckConstraint(
            f"channel IN ({', '.join(repr(c) for c in NOTIFICATION_CHANNELS)})",
            name="ck_notification_channel",
        ),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("notif"))
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    threshold = db.Column(db.Integer, nullable=False)
    recipient = db.Column(db.String(255), nullable=False)
    channel = db.Column(db.String(16), nullable=False, default=NOTIFICATION_CHANNEL_EMAIL)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "threshold": self.threshold,
            "recipient": self.recipient,
            "channel": self.channel,
            "is_enabled": self.is_enabled,
            "created_at": to_utc_z(self.created_at),
        }
