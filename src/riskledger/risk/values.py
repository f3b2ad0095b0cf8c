"""Value objects used by the risk aggregate."""

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict

from riskledger.core.exceptions import ValidationError

RISK_NAME_MIN_LENGTH = 3
RISK_NAME_MAX_LENGTH = 200


class RiskName(BaseModel):
    """Validated display name of a risk."""

    model_config = ConfigDict(frozen=True)

    value: str

    @classmethod
    def create(cls, name: str) -> "RiskName":
        """Validate and wrap a risk name.

        Raises:
            ValidationError: If the name is empty, shorter than 3 or longer
                than 200 characters
        """
        if not name or not name.strip():
            raise ValidationError("name", "Risk name cannot be empty")
        if len(name) < RISK_NAME_MIN_LENGTH:
            raise ValidationError(
                "name", f"Risk name must be at least {RISK_NAME_MIN_LENGTH} characters"
            )
        if len(name) > RISK_NAME_MAX_LENGTH:
            raise ValidationError(
                "name", f"Risk name cannot exceed {RISK_NAME_MAX_LENGTH} characters"
            )
        return cls(value=name)

    def __str__(self) -> str:
        return self.value


class RiskOwner(BaseModel):
    """Person accountable for a risk."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    department: str
    assigned_at: AwareDatetime

    @classmethod
    def create(
        cls,
        user_id: str,
        name: str,
        department: str,
        assigned_at: datetime,
    ) -> "RiskOwner":
        """Validate and build an owner.

        Raises:
            ValidationError: If any identifying field is empty
        """
        if not user_id:
            raise ValidationError("owner_id", "Owner user ID is required")
        if not name:
            raise ValidationError("owner_name", "Owner name is required")
        if not department:
            raise ValidationError("owner_department", "Owner department is required")
        return cls(user_id=user_id, name=name, department=department, assigned_at=assigned_at)
