"""
Startup Dashboard - Auth Pydantic Schemas
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, model_validator


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    position: str = ""
    email: EmailStr
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    """Exactly one of otp / backup_code proves possession of the account."""
    email: EmailStr
    otp: Optional[str] = None
    backup_code: Optional[str] = None

    @model_validator(mode="after")
    def one_factor(self):
        if bool(self.otp) == bool(self.backup_code):
            raise ValueError("provide exactly one of otp or backup_code")
        return self


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=8)
