"""Shared base for models that cross the wire in camelCase."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Attributes are snake_case in Python; the external protocol uses camelCase.
    Either spelling is accepted on input. Serialize with by_alias=True.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
