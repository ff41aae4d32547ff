"""
Base schemas and common response models.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class CamelSchema(BaseSchema):
    """
    Schema whose wire format is camelCase (API responses, cached results,
    provider output). Python attributes stay snake_case.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ErrorResponse(BaseSchema):
    """Error response format."""

    error: str
    message: str
    details: Optional[object] = None
