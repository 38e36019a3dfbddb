"""Schemas related to the X account connection."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ConnectedUser(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    username: Optional[str] = None


class AuthStatusResponse(BaseModel):
    """Whether an X account is connected for the current user."""

    authenticated: bool
    user: Optional[ConnectedUser] = Field(
        None, description="Present only when an account is connected."
    )


class DisconnectResponse(BaseModel):
    success: bool = True
    message: str = "Account disconnected successfully"


__all__ = ["AuthStatusResponse", "ConnectedUser", "DisconnectResponse"]
