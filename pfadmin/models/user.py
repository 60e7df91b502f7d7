"""
Provident Fund Back Office
User domain model.

Models:
    - User: employee or HR staff member; supplies the role that access
      resolution is evaluated against.
"""

from datetime import datetime, timezone
from enum import Enum

from pfadmin.models import db


class Role(str, Enum):
    """Back-office roles.

    GENERAL_HR and ADMIN carry blanket privilege (see access_resolver).
    """
    EMPLOYEE = "Employee"
    HR_ASSISTANT = "HRAssistant"
    HR_OFFICER = "HROfficer"
    HR_APPROVER = "HRApprover"
    TREASURY = "Treasury"
    GENERAL_HR = "GeneralHR"
    ADMIN = "Admin"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    employee_no = db.Column(db.String(30), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    role = db.Column(
        db.Enum(Role, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.EMPLOYEE,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_users_role", "role"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employee_no": self.employee_no,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.name} ({self.role.value if self.role else '-'})>"
