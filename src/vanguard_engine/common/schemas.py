"""Shared Pydantic schemas for Vanguard-Engine."""

import math

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "vanguard-engine"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""


class PaginatedResponse(BaseModel):
    items: list
    total: int
    page: int
    page_size: int
    pages: int

    @classmethod
    def build(cls, items: list, total: int, page: int, page_size: int):
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if total else 0,
        )


def resolve_page_size(requested: int | None) -> int:
    """Apply the configured default and ceiling to a requested page size."""
    from vanguard_engine.common.config import get_settings

    settings = get_settings()
    if requested is None:
        return settings.default_page_size
    return min(requested, settings.max_page_size)
