from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from core.utils.core_enums import CallType, CallStatus, EndReason
from schemas.pricing_schema import PricingConfig


class BillingSegment(BaseModel):
    call_type: CallType
    start_instant: datetime
    end_instant: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end_instant is None


class SegmentRecord(BaseModel):
    call_type: CallType
    start_instant: datetime
    end_instant: datetime
    duration_seconds: int
    coins_exact: Decimal
    coins_spent: int


class BillingSnapshot(BaseModel):
    reference_instant: datetime
    coins_exact: Decimal
    coins_spent_rounded: int
    total_duration_seconds: int
    audio_seconds: int
    video_seconds: int
    segments: List[SegmentRecord] = []


class ConnectionState(BaseModel):
    is_connected: bool = True
    reconnect_time_remaining: int = Field(default=0, ge=0)


# ---------------- Operation results ----------------

class ValidateCallResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    max_duration: Optional[int] = None
    pricing: Optional[PricingConfig] = None
    wallet_balance: Optional[Decimal] = None


class StartCallResult(BaseModel):
    success: bool
    error: Optional[str] = None


class BillingSyncResult(BaseModel):
    success: bool
    coins_deducted: Decimal = Decimal(0)
    error: Optional[str] = None


class SwitchCallTypeResult(BaseModel):
    success: bool
    call_type: Optional[CallType] = None
    coins_deducted: Decimal = Decimal(0)
    error: Optional[str] = None


class EndCallResult(BaseModel):
    success: bool
    coins_spent: int = 0
    end_reason: Optional[EndReason] = None


class BillingTick(BaseModel):
    coins_remaining: Decimal
    seconds_remaining: int
    is_low_balance: bool
    should_end: bool = False
    end_reason: Optional[EndReason] = None
    sync: BillingSyncResult


# ---------------- Persistence ----------------

class CreateCallRecord(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    call_id: str
    user_id: str
    host_id: str
    call_type: CallType
    start_time: datetime
    duration: int = 0
    coins_spent: int = 0
    status: CallStatus = CallStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CallSegmentBreakdown(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    call_type: CallType
    start_time: datetime
    end_time: datetime
    duration: int
    coins_spent: int


# ---------------- Requests ----------------

class ValidateCallRequest(BaseModel):
    caller_id: str
    host_id: str
    is_video: bool = False


class StartCallRequest(BaseModel):
    caller_id: str
    host_id: str
    call_id: str
    is_video: bool = False


class SwitchCallTypeRequest(BaseModel):
    caller_id: str
    is_video: bool


class CallerRequest(BaseModel):
    caller_id: str


class ConnectivityRequest(BaseModel):
    caller_id: str
    is_connected: bool


class EndCallRequest(BaseModel):
    caller_id: str
    reason: EndReason = EndReason.USER
