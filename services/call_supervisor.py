import asyncio
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config.basic_config import settings
from core.utils.core_enums import EndReason
from core.utils.logging_config import get_logger
from schemas.call_schema import (
    BillingTick,
    ConnectionState,
    EndCallResult,
    StartCallResult,
    SwitchCallTypeResult,
    ValidateCallResult,
)
from services.call_manager import CallManager
from services.connection_monitor import ConnectionMonitor, ReportedReachability

logger = get_logger(__name__)


class CallSupervisor:
    """
    Runs one call: drives CallManager.tick on an interval job and ends the
    call when coins run out or the reconnection grace period expires.
    """

    def __init__(
        self,
        caller_id: str,
        manager: CallManager,
        reachability: Optional[ReportedReachability] = None,
        monitor: Optional[ConnectionMonitor] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        tick_interval_seconds: int = settings.BILLING_TICK_INTERVAL_SECONDS,
        on_finished: Optional[Callable[["CallSupervisor", EndCallResult], Awaitable[None]]] = None,
    ):
        self.caller_id = caller_id
        self.manager = manager
        self.reachability = reachability or ReportedReachability()
        self.monitor = monitor or ConnectionMonitor(self.reachability)
        self._scheduler = scheduler
        self._tick_interval_seconds = tick_interval_seconds
        self._on_finished = on_finished
        self._job_id: Optional[str] = None
        self._finish_task: Optional[asyncio.Task] = None
        self._end_task: Optional[asyncio.Task] = None
        self.connection_state = ConnectionState()
        self.last_tick: Optional[BillingTick] = None
        self.end_result: Optional[EndCallResult] = None

    @property
    def is_active(self) -> bool:
        return self.manager.is_active and self._finish_task is None

    @property
    def end_task(self) -> Optional[asyncio.Task]:
        return self._end_task

    async def validate(self, host_id: str, is_video: bool) -> ValidateCallResult:
        return await self.manager.validate_call(self.caller_id, host_id, is_video)

    async def start(self, host_id: str, call_id: str, is_video: bool) -> StartCallResult:
        result = await self.manager.start_call(self.caller_id, host_id, call_id, is_video)
        if not result.success:
            return result

        self.monitor.update_timeout(self.manager.pricing.reconnection_timeout_seconds)
        await self.monitor.start(self.handle_connection_status)

        if self._scheduler is not None:
            self._job_id = f"billing-tick-{call_id}"
            self._scheduler.add_job(
                self.handle_tick,
                "interval",
                seconds=self._tick_interval_seconds,
                id=self._job_id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        return result

    async def switch_type(self, is_video: bool) -> SwitchCallTypeResult:
        if self._finish_task is not None:
            return SwitchCallTypeResult(success=False, error="Call is ending")
        return await self.manager.switch_call_type(is_video)

    async def handle_tick(self) -> Optional[BillingTick]:
        if not self.is_active:
            return self.last_tick
        tick = await self.manager.tick()
        self.last_tick = tick
        if tick.should_end:
            logger.info("Caller %s is out of coins, ending call", self.caller_id)
            await self.finish(tick.end_reason or EndReason.TIMEOUT)
        return tick

    def report_connectivity(self, is_connected: bool):
        self.reachability.report(is_connected)

    def handle_connection_status(self, state: ConnectionState):
        self.connection_state = state
        if not state.is_connected and state.reconnect_time_remaining == 0 and self.is_active:
            logger.info("Caller %s did not reconnect in time, ending call", self.caller_id)
            self._end_task = self._begin_finish(EndReason.CONNECTION)

    async def finish(self, reason: EndReason = EndReason.USER) -> EndCallResult:
        """
        End the call once. A caller arriving while settlement is running waits
        for it and gets the same result; the first reason wins.
        """
        return await asyncio.shield(self._begin_finish(reason))

    def _begin_finish(self, reason: EndReason) -> asyncio.Task:
        if self._finish_task is None:
            self._finish_task = asyncio.get_running_loop().create_task(self._run_finish(reason))
        return self._finish_task

    async def _run_finish(self, reason: EndReason) -> EndCallResult:
        self.monitor.stop()
        self._remove_job()

        result = await self.manager.end_call(self.caller_id, reason)
        self.end_result = result
        if self._on_finished is not None:
            await self._on_finished(self, result)
        return result

    def _remove_job(self):
        if self._scheduler is None or self._job_id is None:
            return
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            pass
        self._job_id = None
