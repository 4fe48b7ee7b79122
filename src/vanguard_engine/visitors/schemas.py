"""Pydantic schemas for visitor endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from vanguard_engine.common.schemas import PaginatedResponse


class VisitorCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=255)
    document_id: Optional[str] = Field(None, max_length=100)
    notes: str = ""


class VisitorResponse(BaseModel):
    id: str
    tenant_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    document_id: Optional[str] = None
    notes: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}


class VisitorPage(PaginatedResponse):
    items: list[VisitorResponse]
