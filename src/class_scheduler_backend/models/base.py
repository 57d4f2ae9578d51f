'''
Shared configuration for every API model.
'''
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """
    Base model for the wire format: camelCase on the wire, snake_case in Python.
    Also readable straight from ORM objects.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )
