from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from config.basic_config import settings
from schemas.pricing_schema import PricingConfig, HostPricingOverride


def default_global_pricing() -> dict:
    return {
        "audio_cost_per_minute": settings.DEFAULT_AUDIO_COST_PER_MINUTE,
        "video_cost_per_minute": settings.DEFAULT_VIDEO_COST_PER_MINUTE,
        "minimum_duration_seconds": settings.MINIMUM_CALL_DURATION_SECONDS,
        "warning_threshold_seconds": settings.LOW_BALANCE_WARNING_SECONDS,
        "reconnection_timeout_seconds": settings.RECONNECTION_TIMEOUT_SECONDS,
    }


def _pick(source: Any, key: str):
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def resolve_pricing(
    global_config: Optional[Union[Mapping, PricingConfig]] = None,
    host_override: Optional[Union[Mapping, HostPricingOverride]] = None,
) -> PricingConfig:
    """
    Merge the global pricing with a host's own per-minute rates.

    - Host audio/video rates win when the host has set them.
    - Minimum duration, warning threshold and reconnection timeout always
      come from the global config.
    - Any field missing from the global config falls back to settings.
    """
    defaults = default_global_pricing()
    merged = {}
    for key, fallback in defaults.items():
        value = _pick(global_config, key)
        merged[key] = fallback if value is None else value

    for key in ("audio_cost_per_minute", "video_cost_per_minute"):
        host_rate = _pick(host_override, key)
        if host_rate is not None:
            merged[key] = host_rate

    for key in ("audio_cost_per_minute", "video_cost_per_minute"):
        merged[key] = Decimal(str(merged[key]))

    return PricingConfig(**merged)
