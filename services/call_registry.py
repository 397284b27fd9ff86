from typing import Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config.basic_config import settings
from core.utils.core_enums import EndReason
from core.utils.exceptions import CallNotActiveError
from core.utils.logging_config import get_logger
from schemas.call_schema import EndCallResult
from services.call_manager import CallManager
from services.call_supervisor import CallSupervisor

logger = get_logger(__name__)


class CallRegistry:
    """Keeps one CallSupervisor per caller for the lifetime of the process."""

    def __init__(
        self,
        manager_factory: Callable[[], CallManager],
        scheduler: Optional[AsyncIOScheduler] = None,
        tick_interval_seconds: int = settings.BILLING_TICK_INTERVAL_SECONDS,
    ):
        self._manager_factory = manager_factory
        self._scheduler = scheduler
        self._tick_interval_seconds = tick_interval_seconds
        self._calls: Dict[str, CallSupervisor] = {}

    def __len__(self):
        return len(self._calls)

    def has_active_call(self, caller_id: str) -> bool:
        supervisor = self._calls.get(caller_id)
        return supervisor is not None and supervisor.is_active

    def prepare(self, caller_id: str) -> CallSupervisor:
        """Fresh supervisor for a caller about to validate a call."""
        supervisor = CallSupervisor(
            caller_id=caller_id,
            manager=self._manager_factory(),
            scheduler=self._scheduler,
            tick_interval_seconds=self._tick_interval_seconds,
            on_finished=self._release,
        )
        self._calls[caller_id] = supervisor
        return supervisor

    def get(self, caller_id: str) -> CallSupervisor:
        supervisor = self._calls.get(caller_id)
        if supervisor is None:
            raise CallNotActiveError(caller_id)
        return supervisor

    def discard(self, caller_id: str):
        self._calls.pop(caller_id, None)

    async def _release(self, supervisor: CallSupervisor, result: EndCallResult):
        if self._calls.get(supervisor.caller_id) is supervisor:
            del self._calls[supervisor.caller_id]
        logger.debug("Released call supervisor for caller %s", supervisor.caller_id)

    async def shutdown(self):
        for supervisor in list(self._calls.values()):
            if supervisor.is_active:
                await supervisor.finish(EndReason.ERROR)
        self._calls.clear()
