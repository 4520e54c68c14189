from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')

    service_id: int = Field(gt=0)
    child_name: str = Field(min_length=1, max_length=120)
    child_age: int = Field(ge=0, le=216)  # months
    parent_name: str = Field(min_length=1, max_length=160)
    parent_email: str = Field(min_length=3, max_length=200, pattern=r'^[^@\s]+@[^@\s]+$')
    parent_phone: str = Field(min_length=1, max_length=40)
    start_month: int = Field(ge=1, le=12)
    start_year: int = Field(ge=2000, le=2100)
    # Day of week (0=Sunday..6=Saturday) -> schedule slot id, null when the day is not booked.
    weekly_schedule: dict[int, int | None]
    sessions_per_month: int = Field(ge=1)
    special_requests: str | None = None
    promotion_code: str | None = None

    # Older clients still post these; prices are always recomputed server-side.
    preferred_days: list[str] | None = None
    preferred_times: list[str] | None = None
    base_monthly_price: Decimal | None = None
    final_monthly_price: Decimal | None = None

    @field_validator('weekly_schedule')
    @classmethod
    def _days_in_week(cls, value: dict[int, int | None]) -> dict[int, int | None]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError('weekly_schedule keys must be days of week between 0 and 6')
        return value

    @field_validator('promotion_code', 'special_requests')
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        return value or None


class SubscriptionStatusUpdateRequest(BaseModel):
    status: Literal['active', 'completed', 'cancelled']


class PromotionValidateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    promo_code: str = Field(min_length=1)
    service_id: int = Field(gt=0)
    child_age: int = Field(default=0, ge=0)
    original_price: Decimal = Field(ge=0)
