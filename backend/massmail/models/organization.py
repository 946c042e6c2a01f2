"""
Pydantic models for organizations (tenants).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""


class OrganizationSummary(BaseModel):
    """One row of the organization listing."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    member_count: int = Field(0, alias="memberCount")
    is_admin: bool = Field(False, alias="isAdmin")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class OrganizationList(BaseModel):
    success: bool = True
    data: List[OrganizationSummary]
    pagination: Pagination
