from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID

from fastapi.encoders import decimal_encoder
from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from campaign_manager.models import CampaignStatus


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        # bcrypt rejects secrets longer than 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    token: str
    user_id: UUID
    email: str
    name: str
    role: str


class CampaignRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    budget: Optional[Decimal] = Field(None, gt=0, description="Budget must be positive")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_audience: Optional[str] = Field(None, max_length=500)
    status: Optional[CampaignStatus] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Campaign name is required")
        return v

    @model_validator(mode="after")
    def end_date_not_before_start_date(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class CampaignSummary(BaseModel):
    id: UUID
    name: str
    status: CampaignStatus
    budget: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True, json_encoders={Decimal: decimal_encoder}
    )


class CampaignResponse(CampaignSummary):
    description: Optional[str] = None
    target_audience: Optional[str] = None
    updated_at: Optional[datetime] = None
    asset_count: int = 0


class AssetResponse(BaseModel):
    id: UUID
    campaign_id: UUID
    file_name: str
    url: str
    file_type: str
    file_size: int
    uploaded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MetricRowSummary(BaseModel):
    """One day of campaign metrics with its derived rates (percentages)."""

    date: date
    impressions: int
    clicks: int
    conversions: int
    click_through_rate: float
    conversion_rate: float


class CampaignPerformance(BaseModel):
    campaign_id: UUID
    campaign_name: str
    status: CampaignStatus
    total_impressions: int
    total_clicks: int
    total_conversions: int
    click_through_rate: float
    conversion_rate: float


class DashboardSummary(BaseModel):
    total_campaigns: int = 0
    active_campaigns: int = 0
    total_budget: Decimal = Decimal("0")
    total_impressions: int = 0
    total_clicks: int = 0
    total_conversions: int = 0
    average_click_through_rate: float = 0.0
    average_conversion_rate: float = 0.0

    model_config = ConfigDict(json_encoders={Decimal: decimal_encoder})

    @field_validator("*")
    @classmethod
    def decimal_percision_rounded_to_two(cls, v: Any) -> Any:
        if isinstance(v, Decimal):
            return Decimal(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return v
