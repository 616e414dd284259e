"""Auth-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class AuthUser(BaseModel):
    """Claims taken from a verified auth provider access token."""

    id: str
    email: str | None = None
    app_metadata: dict[str, Any] = {}
    user_metadata: dict[str, Any] = {}
    expires_at: int | None = None

    @property
    def claim_role(self) -> str | None:
        return self.app_metadata.get("role")

    @property
    def full_name(self) -> str | None:
        return self.user_metadata.get("full_name") or self.user_metadata.get("name")


class UserListing(BaseModel):
    id: str
    full_name: str
    email: str | None = None
    created_at: str | None = None
