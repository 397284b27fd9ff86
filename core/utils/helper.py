from bson import ObjectId, Decimal128
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def convert_objectid_to_str(obj):
    """
    Recursively convert ObjectId fields to strings in a dict or list.
    """
    if isinstance(obj, dict):
        return {k: convert_objectid_to_str(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_objectid_to_str(item) for item in obj]
    elif isinstance(obj, ObjectId):
        return str(obj)
    else:
        return obj


#helper function for converting Decimal128 values read from mongo
def convert_decimal128(obj):
    """
    Recursively convert Decimal128 values to Decimal in a dict or list.
    """
    if isinstance(obj, dict):
        return {k: convert_decimal128(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_decimal128(item) for item in obj]
    elif isinstance(obj, Decimal128):
        return obj.to_decimal()
    else:
        return obj


def to_decimal(value: Any, default: Decimal = Decimal(0)) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_decimal128(value: Any) -> Decimal128:
    return Decimal128(to_decimal(value))


def as_object_id(value: str):
    # users created by the auth service use ObjectId keys, imported ones may not
    return ObjectId(value) if ObjectId.is_valid(value) else value


def whole_minutes(seconds: int) -> int:
    return max(0, int(seconds) // 60)
