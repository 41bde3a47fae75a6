from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from isbnexport.models.editions import SourceStats


class FindOtherEditionsInput(BaseModel):
    isbns: list[str] = Field(min_length=1, max_length=500)
    sources: list[str] | None = None
    both_isbns: bool = False

    @field_validator("isbns")
    @classmethod
    def strip_isbns(cls, v: list[str]) -> list[str]:
        stripped = [isbn.strip() for isbn in v]
        if any(not isbn or len(isbn) > 32 for isbn in stripped):
            raise ValueError("each ISBN must be a non-empty string of at most 32 characters")
        return stripped


class FindOtherEditionsOutput(BaseModel):
    isbns: list[str]
    warnings: list[str]
    temporary_faults: list[str]
    retry_not_before: datetime | None
    sources: dict[str, SourceStats]


class CheckForUpdatesOutput(BaseModel):
    url: str
    content: str | None
    expires_at: datetime | None
    etag: str | None = None
    last_modified: str | None = None


class ClearCacheOutput(BaseModel):
    cleared_sources: list[str]
