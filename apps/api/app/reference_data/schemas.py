from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CountryWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    country_code: str = Field(min_length=2, max_length=2, pattern=r"^[A-Za-z]{2}$")
    country_name: str = Field(min_length=2, max_length=100)
    is_active: bool = True


class CountryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    country_code: str
    country_name: str
    is_active: bool
    created_at: datetime
    modified_at: datetime | None


class GeneralCodeWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    code_type: int
    code_number: int
    code_short_description: str = Field(min_length=1, max_length=100)
    code_long_description: str | None = None
    language_code: int
    is_active: bool = True


class GeneralCodeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code_type: int
    code_number: int
    code_short_description: str
    code_long_description: str | None
    language_code: int
    is_active: bool
    opened_at: datetime
    closed_at: datetime | None
