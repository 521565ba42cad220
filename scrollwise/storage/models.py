"""
Shared Pydantic v2 base for Scrollwise domain models.

Python code uses snake_case attributes; JSON (extension payloads, API
responses) uses camelCase, matching what the browser extension and dashboard
already send and read.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases, populated by either name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
