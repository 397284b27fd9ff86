from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from core.utils.core_enums import TransactionType, TransactionStatus


class CreateCallTransaction(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    user_id: str
    type: TransactionType = TransactionType.CALL
    amount: Decimal
    description: str
    reference: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TransactionHistory(BaseModel):
    user_id: str
    type: str
    amount: Decimal
    description: str
    reference: Optional[str] = None
    status: str
    created_at: datetime
