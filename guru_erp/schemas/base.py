"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class PartResponse(BaseResponseSchema):
            id: UUID
            name: str
            stock_quantity: int
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored so older clients keep working. Enum fields
    dump as plain strings, matching the VARCHAR status columns.
    """
    model_config = ConfigDict(
        extra='ignore',
        use_enum_values=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; services apply ``model_dump(exclude_unset=True)``.
    """
    model_config = ConfigDict(
        extra='ignore',
        use_enum_values=True,
    )
