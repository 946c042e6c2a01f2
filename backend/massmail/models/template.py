"""
Pydantic models for email templates ("models" in the public API).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EmailTemplate(BaseModel):
    """Template row from the models table."""
    model_config = ConfigDict(extra="ignore")

    id: str
    organization_id: Optional[str] = None
    title: str  # subject line
    body: str   # HTML content
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TemplateCreate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None


class TemplateUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model_id: Optional[str] = Field(None, alias="modelId")
    title: Optional[str] = None
    body: Optional[str] = None
