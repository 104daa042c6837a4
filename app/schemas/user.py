"""Pydantic schemas for user records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserRecord(BaseModel):
    """A user record as served by the store.

    Records are immutable once created; equality is by all fields.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Store-assigned identifier.")
    name: str = Field(..., min_length=1, description="Display name.")
    email: str = Field(..., min_length=1, description="Contact email address.")


class CreateUserRequest(BaseModel):
    """Payload accepted by the create user endpoint."""

    name: str = Field(..., min_length=1, description="Display name of the new user.")
    email: str = Field(..., min_length=1, description="Email address of the new user.")
