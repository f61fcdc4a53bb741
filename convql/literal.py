"""Raw SQL literal, emitted verbatim (unquoted) into statements."""

from pydantic import BaseModel


class Literal(BaseModel):
    """SQL text that must not be quoted, e.g. ``Literal(value="NOW()")``."""

    value: str

    def __init__(self, value: str, **data):
        super().__init__(value=value, **data)

    def __str__(self) -> str:
        return self.value
