from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from procurement.schemas.primitives import ORMModel


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    department: Optional[str] = None
    contact_number: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class UserOut(ORMModel):
    id: int
    username: str
    email: str
    role: str
    department: Optional[str] = None
    contact_number: Optional[str] = None
    is_active: bool
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
