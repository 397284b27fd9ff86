from decimal import Decimal
from typing import Optional

from pymongo import ReturnDocument

from config.db_config import USERS
from core.utils.helper import as_object_id, to_decimal, to_decimal128, utc_now

WALLET_FIELD = "wallet_balance"


class MongoWalletStore:
    """Coin wallet kept on the user document."""

    def __init__(self, db):
        self._users = db[USERS]

    async def get_balance(self, user_id: str) -> Optional[Decimal]:
        user = await self._users.find_one({"_id": as_object_id(user_id)}, {WALLET_FIELD: 1})
        if not user:
            return None
        return to_decimal(user.get(WALLET_FIELD))

    async def adjust_balance(self, user_id: str, delta: Decimal) -> Decimal:
        # $inc keeps concurrent writers to the same wallet from losing updates
        user = await self._users.find_one_and_update(
            {"_id": as_object_id(user_id)},
            {
                "$inc": {WALLET_FIELD: to_decimal128(delta)},
                "$set": {"updated_at": utc_now()},
            },
            projection={WALLET_FIELD: 1},
            return_document=ReturnDocument.AFTER,
        )
        if user is None:
            raise LookupError(f"Wallet not found for user {user_id}")
        return to_decimal(user.get(WALLET_FIELD))
