# fuel_orders/domain/context.py
from dataclasses import dataclass
from .entities import Department
from .errors import ValidationError


@dataclass(frozen=True)
class RequestContext:
    """Identidad del actor de la petición; se pasa explícitamente a cada caso de uso."""
    user_id: str
    department: Department
    user_name: str = ""

    def __post_init__(self):
        if not self.user_id or not str(self.user_id).strip():
            raise ValidationError("User id is required.", field="user_id")
        try:
            object.__setattr__(self, 'department', Department(self.department))
        except ValueError:
            raise ValidationError(f"Unknown department '{self.department}'.", field="department") from None

    @property
    def display_name(self) -> str:
        return self.user_name or self.user_id
