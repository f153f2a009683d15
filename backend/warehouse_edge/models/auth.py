from __future__ import annotations

from ..extensions import db
from .ids import new_id


ROLE_ADMIN = "Admin"
ROLE_WAREHOUSE_MANAGER = "WarehouseManager"
ROLE_DEPARTMENT_EMPLOYEE = "DepartmentEmployee"

USER_ROLES = (ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER, ROLE_DEPARTMENT_EMPLOYEE)


class User(db.Model):
    """
    Directory entry for a person acting on the system.

    category_access is required for DepartmentEmployee and restricts the
    products they can see and request to that single category name.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role != 'DepartmentEmployee' OR category_access IS NOT NULL",
            name="ck_users_employee_category",
        ),
        db.CheckConstraint(
            f"role IN ({', '.join(repr(r) for r in USER_ROLES)})",
            name="ck_users_role",
        ),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("user"))
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(32), nullable=False, index=True)
    category_access = db.Column(db.String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.name!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "category_access": self.category_access,
        }
