# backend/trois_quarts/schemas/base_schema.py
"""
Esquema base compartido: los campos se exponen en camelCase en el JSON
(deliveryMode, idempotencyKey...) y se usan en snake_case en Python.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """Serializa el modelo tal y como viaja por HTTP."""
        return self.model_dump(mode="json", by_alias=True)
