"""
Demo staff directory for local development.

User management is owned by the HR system of record; this only gives a fresh
database one active account per role so the lifecycle can be exercised end to
end. Idempotent: rows are matched on ``employee_no``.
"""

import logging

from pfadmin.models import db
from pfadmin.models.user import Role, User

logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("EMP-00001", "Ana Reyes", Role.EMPLOYEE),
    ("EMP-00002", "Ben Cruz", Role.EMPLOYEE),
    ("HRA-00001", "Carla Santos", Role.HR_ASSISTANT),
    ("HRO-00001", "Diego Lim", Role.HR_OFFICER),
    ("HRP-00001", "Elena Tan", Role.HR_APPROVER),
    ("TRS-00001", "Felix Ong", Role.TREASURY),
    ("GHR-00001", "Grace Uy", Role.GENERAL_HR),
    ("ADM-00001", "Admin", Role.ADMIN),
]


def seed_demo_users() -> int:
    """Insert missing demo users. Returns the number created. Caller commits."""
    existing = {no for (no,) in db.session.query(User.employee_no).all()}
    created = 0
    for employee_no, name, role in DEMO_USERS:
        if employee_no in existing:
            continue
        db.session.add(User(
            employee_no=employee_no,
            name=name,
            email=f"{employee_no.lower()}@example.com",
            role=role,
            is_active=True,
        ))
        created += 1
    db.session.flush()
    logger.debug("Demo users: %d created, %d already present", created, len(DEMO_USERS) - created)
    return created
