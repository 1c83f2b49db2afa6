"""Client records as seen by the billing flows."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Client(BaseModel):
    """Catering client with its cached gateway customer id."""

    id: int
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    gateway_customer_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.company_name


__all__ = ["Client"]
