
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class AuthenticatedUserPayload(BaseModel):
    username: str
    roles: List[str] = Field(default_factory=list, description="Rôles normalisés, sans préfixe ROLE_")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: AuthenticatedUserPayload


class LogoutResponse(BaseModel):
    status: str = "logged_out"


__all__ = ["AuthenticatedUserPayload", "LogoutResponse", "TokenResponse"]
