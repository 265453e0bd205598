"""Base model for request and response bodies.

Bodies use camelCase on the wire; Python code keeps snake_case names.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
