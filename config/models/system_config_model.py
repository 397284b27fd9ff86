from typing import Optional

from config.db_config import SYSTEM_CONFIG
from core.utils.helper import convert_decimal128

CALL_PRICING_KEY = "call_pricing"


class MongoPricingConfigSource:
    """
    Global call pricing kept in system_config as
    {"key": "call_pricing", "audio_cost_per_minute": ..., ...}.
    Fields left out fall back to the settings defaults.
    """

    def __init__(self, db):
        self._system_config = db[SYSTEM_CONFIG]

    async def get_global_pricing(self) -> Optional[dict]:
        doc = await self._system_config.find_one({"key": CALL_PRICING_KEY}, {"_id": 0, "key": 0})
        if not doc:
            return None
        return convert_decimal128(doc)
