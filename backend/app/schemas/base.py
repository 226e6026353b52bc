"""Shared base for camelCase JSON schemas.

The browser extension speaks camelCase JSON; Python code uses snake_case
field names. ``populate_by_name`` lets services build responses with either.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelSchema(BaseModel):
    """Base model with snake_case -> camelCase aliases."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
    )
