# app/schemas/addon.py
import uuid
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class CartAddonCreate(SQLModel):
    """
    Attach an add-on product to a cart line.
    """

    model_config = ConfigDict(extra="forbid")

    addon_product_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)
    selected_options: dict[str, Any] = Field(default_factory=dict)


class CartAddonUpdate(SQLModel):
    """
    Partial update; omitted fields are left alone.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int | None = Field(default=None, gt=0)
    selected_options: dict[str, Any] | None = None
