"""Shared Pydantic schema base."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base class for schemas returned to the request layer and the CLI."""

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        extra="ignore",
    )

    def serializable_dict(self, *, exclude_none: bool = False, **kwargs: Any) -> dict[str, Any]:
        """Return a JSON-ready dict representation."""

        return self.model_dump(mode="json", exclude_none=exclude_none, **kwargs)


__all__ = ["BaseSchema"]
