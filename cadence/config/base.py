"""Base configuration model shared by every config section."""

from pydantic import BaseModel


class CadenceBaseConfig(BaseModel):
    """Strict base: unknown keys are rejected and assignments are re-validated."""

    model_config = {"extra": "forbid", "validate_assignment": True}
