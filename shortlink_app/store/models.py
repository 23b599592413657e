"""
Data models for store change notifications.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StoreChange(BaseModel):
    """
    A write made by another execution context.

    Delivered to handlers registered with ``StoreStrategy.on_change``.
    ``new_value`` is None when the key was removed.
    """

    key: str = Field(..., description="The key that changed")
    old_value: Optional[str] = Field(None, description="Raw value before the write")
    new_value: Optional[str] = Field(None, description="Raw value after the write")

    model_config = ConfigDict(frozen=True)
