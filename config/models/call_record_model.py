from bson import ObjectId
from typing import List, Optional

from config.db_config import CALLS
from core.utils.core_enums import CallStatus, CallType, EndReason
from core.utils.helper import convert_objectid_to_str, utc_now
from schemas.call_schema import CallSegmentBreakdown, CreateCallRecord


class MongoCallRecordStore:
    def __init__(self, db):
        self._calls = db[CALLS]

    async def create(self, record: CreateCallRecord) -> str:
        result = await self._calls.insert_one(record.model_dump())
        return str(result.inserted_id)

    async def update_progress(self, record_id: str, duration_seconds: Optional[int] = None,
                              coins_spent: Optional[int] = None) -> None:
        fields = {"updated_at": utc_now()}
        if duration_seconds is not None:
            fields["duration"] = duration_seconds
        if coins_spent is not None:
            fields["coins_spent"] = coins_spent
        await self._calls.update_one({"_id": ObjectId(record_id)}, {"$set": fields})

    async def update_type(self, record_id: str, call_type: CallType) -> None:
        await self._calls.update_one(
            {"_id": ObjectId(record_id)},
            {"$set": {"call_type": CallType(call_type).value, "updated_at": utc_now()}},
        )

    async def finalize(self, record_id: str, duration_seconds: int, coins_spent: int,
                       segments: List[CallSegmentBreakdown], end_reason: EndReason) -> None:
        await self._calls.update_one(
            {"_id": ObjectId(record_id)},
            {
                "$set": {
                    "status": CallStatus.COMPLETED.value,
                    "end_time": utc_now(),
                    "duration": duration_seconds,
                    "coins_spent": coins_spent,
                    "segments": [segment.model_dump() for segment in segments],
                    "end_reason": EndReason(end_reason).value,
                }
            },
        )

    async def list_for_user(self, user_id: str, skip: int = 0, limit: int = 20) -> List[dict]:
        cursor = (self._calls
                  .find({"user_id": user_id, "status": CallStatus.COMPLETED.value})
                  .sort("start_time", -1).skip(skip).limit(limit))
        docs = await cursor.to_list(length=limit)
        return [convert_objectid_to_str(doc) for doc in docs]
