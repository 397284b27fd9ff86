from typing import List

from config.db_config import TRANSACTIONS
from core.utils.helper import convert_decimal128, convert_objectid_to_str, to_decimal128
from schemas.transaction_schema import CreateCallTransaction, TransactionHistory


class MongoTransactionLog:
    def __init__(self, db):
        self._transactions = db[TRANSACTIONS]

    async def record(self, transaction: CreateCallTransaction) -> str:
        doc = transaction.model_dump()
        doc["amount"] = to_decimal128(doc["amount"])
        result = await self._transactions.insert_one(doc)
        return str(result.inserted_id)

    async def list_for_user(self, user_id: str, skip: int = 0, limit: int = 50) -> List[TransactionHistory]:
        cursor = ((self._transactions
                   .find({"user_id": user_id})).sort("created_at", -1).skip(skip).limit(limit))
        docs = await cursor.to_list(length=limit)
        history: List[TransactionHistory] = []
        for doc in docs:
            doc = convert_decimal128(convert_objectid_to_str(doc))
            history.append(TransactionHistory(
                user_id=doc["user_id"],
                type=doc["type"],
                amount=doc["amount"],
                description=doc.get("description", ""),
                reference=doc.get("reference"),
                status=doc.get("status", ""),
                created_at=doc["created_at"],
            ))
        return history
