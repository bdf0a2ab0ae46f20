import logging
from typing import Any
from typing import Dict
from typing import List

from ivms.exceptions import BusinessRuleError
from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.models.models import User
from ivms.services.auth_service import hash_password
from ivms.services.resource_service import ResourceService

logger = logging.getLogger(__name__)


def validate_department_role(department: Department, role: Role) -> None:
    """``SUPER_ADMIN`` lives in ``ADMIN`` and ``ADMIN`` holds only super admins."""

    if role == Role.SUPER_ADMIN and department != Department.ADMIN:
        raise BusinessRuleError("Super Admin must be assigned to ADMIN department")
    if department == Department.ADMIN and role != Role.SUPER_ADMIN:
        raise BusinessRuleError("ADMIN department can only have SUPER_ADMIN role")


class UserService(ResourceService[User]):
    model = User
    label = "User"
    natural_keys = ("username",)
    conflict_messages = {"username": "A user with this username already exists"}

    def find_all(self, include_inactive: bool = True) -> List[User]:
        # Administrators manage deactivated accounts too; newest first.
        query = self.db.query(User)
        if not include_inactive:
            query = query.filter(self.active_clause())
        return query.order_by(User.created_at.desc()).all()

    def find_by_username(self, username: str):
        return self.db.query(User).filter(User.username == username, self.active_clause()).first()

    def create(self, data: Dict[str, Any]) -> User:
        validate_department_role(data["department"], data["role"])

        values = dict(data)
        values["password_hash"] = hash_password(values.pop("password"))
        return super().create(values)

    def before_update(self, row: User, data: Dict[str, Any]) -> None:
        department = data.get("department") or row.department
        role = data.get("role") or row.role
        validate_department_role(department, role)

    def deactivate(self, user_id: str) -> User:
        return self.remove(user_id)

    def activate(self, user_id: str) -> User:
        return self.restore(user_id)
