from typing import Optional

from config.db_config import HOSTS
from core.utils.helper import as_object_id, to_decimal
from schemas.pricing_schema import HostPricingOverride


class MongoHostDirectory:
    def __init__(self, db):
        self._hosts = db[HOSTS]

    async def get_by_id(self, host_id: str) -> Optional[HostPricingOverride]:
        host = await self._hosts.find_one(
            {"_id": as_object_id(host_id)},
            {"audio_cost_per_minute": 1, "video_cost_per_minute": 1},
        )
        if not host:
            return None

        audio = host.get("audio_cost_per_minute")
        video = host.get("video_cost_per_minute")
        return HostPricingOverride(
            host_id=str(host["_id"]),
            audio_cost_per_minute=to_decimal(audio) if audio is not None else None,
            video_cost_per_minute=to_decimal(video) if video is not None else None,
        )
