"""
Pydantic models for users, roles, and authentication.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SUPER_ADMIN = "super-admin"
    ORG_ADMIN = "org-admin"
    USER = "user"


class CurrentUser(BaseModel):
    """The authenticated caller, decoded from the JWT ``user`` claim."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role = Role.USER
    organization_id: Optional[str] = Field(None, alias="organizationId")


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenResponse(BaseModel):
    auth: bool = True
    token: str


class UserCreate(BaseModel):
    """Request body for POST /users."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    password: str
    organization_id: str = Field(alias="organizationId")


class UserSummary(BaseModel):
    id: str
    name: str
    role: Role
