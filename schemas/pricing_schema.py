from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from core.utils.core_enums import CallType


class PricingConfig(BaseModel):
    """Effective pricing for one call. Every field is always present."""

    model_config = ConfigDict(frozen=True)

    audio_cost_per_minute: Decimal = Field(ge=0)
    video_cost_per_minute: Decimal = Field(ge=0)
    minimum_duration_seconds: int = Field(ge=0)
    warning_threshold_seconds: int = Field(ge=0)
    reconnection_timeout_seconds: int = Field(ge=0)

    def rate_for(self, call_type: CallType) -> Decimal:
        if call_type == CallType.VIDEO:
            return self.video_cost_per_minute
        return self.audio_cost_per_minute


class HostPricingOverride(BaseModel):
    host_id: Optional[str] = None
    audio_cost_per_minute: Optional[Decimal] = Field(default=None, ge=0)
    video_cost_per_minute: Optional[Decimal] = Field(default=None, ge=0)
