"""Success envelope shared by every data route."""

from typing import Any

from pydantic import BaseModel


def ok(data: Any) -> dict[str, Any]:
    """Wrap a payload as ``{"success": true, "data": ...}`` with camelCase keys."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    return {"success": True, "data": data}
