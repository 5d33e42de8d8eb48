"""Authenticated caller identity.

Authentication itself happens in the upstream gateway; the API only reads the
identity it forwards.
"""

from uuid import UUID

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: UUID = Field(..., description="User ID")
    role: str = Field(default="user", description="User role")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


__all__ = ["CurrentUser"]
