"""Authentication-related schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    password: str | None = Field(default=None, max_length=128)


class LoginData(BaseModel):
    token: str
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    data: LoginData


class TokenStatusData(BaseModel):
    role: str
    valid: bool = True


class TokenStatusResponse(BaseModel):
    success: bool = True
    data: TokenStatusData


class NewPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_password: str | None = Field(default=None, alias="newPassword", max_length=128)


class MessageResponse(BaseModel):
    success: bool = True
    message: str
