"""
Startup Dashboard - Company Pydantic Schemas
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from constants import MAX_YEAR


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    contact_name: str = Field(min_length=1)
    contact_email: EmailStr
    sector: Optional[str] = None
    description: Optional[str] = None


class CompanyInfoUpdate(BaseModel):
    """Body of an edit with data=info; only these fields are mutable in place."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    contact_name: Optional[str] = Field(default=None, min_length=1)
    contact_email: Optional[EmailStr] = None


class JoinRequest(BaseModel):
    secret_code: str = Field(min_length=1)


class QuarterCreate(BaseModel):
    quarter: str
    year: int = Field(ge=0, le=MAX_YEAR)


class MaskUpdate(BaseModel):
    is_visible: Optional[int] = Field(default=None, ge=0)
    is_editable: Optional[int] = Field(default=None, ge=0)
