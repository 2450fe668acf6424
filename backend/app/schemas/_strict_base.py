"""Shared pydantic bases: strict request bodies, ORM-readable responses."""

from pydantic import BaseModel, ConfigDict


class StrictRequestModel(BaseModel):
    """Request DTO base that rejects unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ResponseModel(BaseModel):
    """Response DTO base populated straight from ORM objects."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
