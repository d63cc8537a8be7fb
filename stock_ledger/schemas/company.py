import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Company name.")
    symbol: str = Field(..., min_length=1, max_length=16, description="Ticker symbol, e.g. AAPL.")
    slug: Optional[str] = Field(None, max_length=255, description="URL slug; derived from the name when omitted.")

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, value: Optional[str]) -> Optional[str]:
        return slugify(value) if value else None


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    symbol: str
    slug: str
    created_at: datetime
    updated_at: datetime
