from __future__ import annotations

from ..extensions import db
from .users import Role


class Product(db.Model):
    """
    Catalog product (read-only for the order workflow).

    requires_approval drives the approval requirement check;
    responsible_role tells operational staff which desk fulfils it.
    Prices, stock and images live with the catalog, not here.
    """
    __tablename__ = "products"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)

    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    responsible_role = db.Column(
        db.Enum(Role, name="product_responsible_role", native_enum=False, length=32, create_constraint=True),
        nullable=False,
        default=Role.IT_SUPPORT,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "model": self.model,
            "requires_approval": self.requires_approval,
            "responsible_role": self.responsible_role.value,
            "is_active": self.is_active,
        }
