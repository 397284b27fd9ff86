from enum import Enum


class CallType(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def from_flag(cls, is_video: bool) -> "CallType":
        return cls.VIDEO if is_video else cls.AUDIO


class CallState(str, Enum):
    IDLE = "idle"
    VALIDATED = "validated"
    ACTIVE = "active"
    ENDING = "ending"  # settlement in progress
    ENDED = "ended"


class CallStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EndReason(str, Enum):
    USER = "user"
    TIMEOUT = "timeout"  # out of coins
    CONNECTION = "connection"
    REMOTE = "remote"
    ERROR = "error"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    CALL = "call"
    REFUND = "refund"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
