from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z


class OrderStatus(str, enum.Enum):
    NEW = "NEW"
    IN_REVIEW = "IN_REVIEW"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    ORDERED = "ORDERED"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    NOTIFIED = "NOTIFIED"
    INVOICE_VERIFIED = "INVOICE_VERIFIED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _status_column(enum_cls, name: str, **kwargs):
    return db.Column(
        db.Enum(enum_cls, name=name, native_enum=False, length=32, create_constraint=True),
        **kwargs,
    )


class Order(db.Model):
    """
    Procurement request.

    LIFECYCLE:
        Created in NEW. Mutated only by OrderLifecycleEngine, which updates
        status and appends a StatusHistory row in the same transaction.
        Never deleted; terminal orders (COMPLETED, REJECTED, CANCELLED)
        keep their full history.

    INVARIANT:
        status == status_history[-1].to_status

    CONCURRENCY:
        version_id is the optimistic lock. Two writers holding the same
        stale version cannot both commit; the loser gets StaleDataError
        and is re-evaluated against the winner's status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_requester_created", "requester_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "BEST-20240314-0042")
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    status = _status_column(OrderStatus, "order_status", nullable=False, default=OrderStatus.NEW)

    requester_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    cost_center = db.Column(db.String(64), nullable=False)
    special_request = db.Column(db.Text, nullable=True)
    justification = db.Column(db.Text, nullable=True)

    # Evaluated once at creation from item flags and special request
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    requester = db.relationship("User", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, *, include_details: bool = False, include_internal: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status.value,
            "requester_id": self.requester_id,
            "requester": {
                "name": self.requester.name,
                "email": self.requester.email,
                "department": self.requester.department,
            } if self.requester else None,
            "cost_center": self.cost_center,
            "special_request": self.special_request,
            "justification": self.justification,
            "requires_approval": self.requires_approval,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
            "version_id": self.version_id,
        }
        if include_details:
            data["status_history"] = [entry.to_dict() for entry in self.status_history]
            data["approvals"] = [approval.to_dict() for approval in self.approvals]
            data["comments"] = [
                comment.to_dict()
                for comment in self.comments
                if include_internal or not comment.is_internal
            ]
        return data


class OrderItem(db.Model):
    """Line item: product reference and positive quantity, in cart order."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, order_by="OrderItem.id", cascade="all, delete-orphan"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
        }


class StatusHistory(db.Model):
    """
    Order status audit trail.

    One row per transition, including the creation row (from_status NULL -> NEW).
    Ordered by id, the to_status values replay the order's full lifecycle.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "status_history"
    __table_args__ = (
        db.Index("ix_status_history_order_changed", "order_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # NULL only for the creation row
    from_status = _status_column(OrderStatus, "history_from_status", nullable=True)
    to_status = _status_column(OrderStatus, "history_to_status", nullable=False)

    changed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    note = db.Column(db.Text, nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("status_history", lazy=True, order_by="StatusHistory.id"),
    )
    changed_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "changed_by_user_id": self.changed_by_user_id,
            "changed_by": self.changed_by.name if self.changed_by else None,
            "note": self.note,
            "changed_at": to_utc_z(self.changed_at),
        }


class Approval(db.Model):
    """
    One approver's decision on an order.

    LIFECYCLE:
        PENDING -> APPROVED
        PENDING -> REJECTED
    Decided exactly once; never deleted.

    At most one PENDING row per (order, approver), enforced by a partial
    unique index.
    """
    __tablename__ = "approvals"
    __table_args__ = (
        db.Index(
            "uq_approvals_order_approver_pending",
            "order_id",
            "approver_id",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ),
        db.Index("ix_approvals_approver_status", "approver_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    status = _status_column(ApprovalStatus, "approval_status", nullable=False, default=ApprovalStatus.PENDING)
    comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship(
        "Order",
        backref=db.backref("approvals", lazy=True, order_by="Approval.id"),
    )
    approver = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "approver_id": self.approver_id,
            "approver": {
                "name": self.approver.name,
                "email": self.approver.email,
            } if self.approver else None,
            "status": self.status.value,
            "comment": self.comment,
            "created_at": to_utc_z(self.created_at),
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
        }


class Comment(db.Model):
    """Free-text note on an order. Internal comments are hidden from requesters."""
    __tablename__ = "comments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    content = db.Column(db.Text, nullable=False)
    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("comments", lazy=True, order_by="Comment.id"),
    )
    author = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "author_id": self.author_id,
            "author": self.author.name if self.author else None,
            "content": self.content,
            "is_internal": self.is_internal,
            "created_at": to_utc_z(self.created_at),
        }
