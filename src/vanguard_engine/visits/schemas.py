"""Pydantic schemas for visit endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from vanguard_engine.common.schemas import PaginatedResponse


class CheckInRequest(BaseModel):
    visitor_id: str = Field(..., min_length=1)
    host_user_id: str = Field(..., min_length=1)
    purpose: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)


class ScheduleRequest(CheckInRequest):
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    generate_token: bool = True

    @model_validator(mode="after")
    def _window_in_order(self):
        if self.scheduled_start and self.scheduled_end and self.scheduled_end < self.scheduled_start:
            raise ValueError("scheduled_end must not be before scheduled_start")
        return self


class ScanRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class VisitorBrief(BaseModel):
    id: str
    first_name: str
    last_name: str
    company: Optional[str] = None


class HostBrief(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str


class VisitResponse(BaseModel):
    id: str
    tenant_id: str
    status: str
    purpose: Optional[str] = None
    location: Optional[str] = None
    scheduled_start: Optional[str] = None
    scheduled_end: Optional[str] = None
    check_in_at: Optional[str] = None
    check_out_at: Optional[str] = None
    qr_token: Optional[str] = None
    qr_code: Optional[str] = None
    created_at: Optional[str] = None
    visitor: Optional[VisitorBrief] = None
    host: Optional[HostBrief] = None


class VisitPage(PaginatedResponse):
    items: list[VisitResponse]


class PublicScanResponse(BaseModel):
    """What an unauthenticated scanner gets back; nothing else leaks."""

    success: bool
    visitor_name: str
    company: Optional[str] = None
    purpose: Optional[str] = None
    check_in_at: str
