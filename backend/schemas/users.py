"""
Startup Dashboard - User Pydantic Schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    position: Optional[str] = None
    role: str
    approved: bool
    company_id: Optional[int] = Field(default=None, validation_alias="startup_id")
    created_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    position: Optional[str] = None
