from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class LicenseIssueIn(BaseModel):
    machine_id: str = Field(..., max_length=512)
    expiry_date: str = Field(..., description="Last valid day in the issuer's civil timezone, YYYY-MM-DD")


class LicenseIssueOut(BaseModel):
    token: str
    machine_id: str
    expiry_date: date
    expires_at: datetime
    expiry_utc: int


class PublicKeyOut(BaseModel):
    public_key: str
