"""Shared types and base model used across the grade domain models."""

from typing import Annotated

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def new_id() -> str:
    """Generate a new time-sortable identifier (UUID v7 as a string)."""
    return str(uuid7())


# --- Reusable annotated types ---

EntityId = Annotated[str, Field(min_length=1, description="Opaque entity identifier.")]
Percent = Annotated[float, Field(description="Percentage on the 0-100 scale.")]


# --- Base model ---


class GradeBase(BaseModel):
    """Base model with common configuration for all grade domain models."""

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
        "allow_inf_nan": False,
    }
