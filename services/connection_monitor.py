import asyncio
import math
import time
from typing import Awaitable, Callable, List, Optional, Protocol

from core.utils.logging_config import get_logger
from schemas.call_schema import ConnectionState

logger = get_logger(__name__)

StatusCallback = Callable[[ConnectionState], None]
ReachabilityCallback = Callable[[bool], None]


class NetworkReachability(Protocol):
    async def subscribe(self, on_change: ReachabilityCallback) -> Callable[[], None]:
        ...


class ReportedReachability:
    """
    Reachability fed by the client itself. The calling app posts its network
    state and every subscriber hears about it.
    """

    def __init__(self):
        self._listeners: List[ReachabilityCallback] = []
        self.is_connected: Optional[bool] = None

    async def subscribe(self, on_change: ReachabilityCallback) -> Callable[[], None]:
        self._listeners.append(on_change)

        def unsubscribe():
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    def report(self, connected: bool):
        self.is_connected = connected
        for listener in list(self._listeners):
            listener(connected)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class ConnectionMonitor:
    """
    Watches reachability during a call and counts down a grace period once
    the connection drops.

    Every tick while disconnected emits a ConnectionState with the whole
    seconds left. The tick that reaches zero emits reconnect_time_remaining=0
    and stops the monitor; what happens to the call is up to the caller.
    """

    def __init__(
        self,
        reachability: NetworkReachability,
        timeout_seconds: float = 45,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tick_interval: float = 1.0,
    ):
        self._reachability = reachability
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep
        self._tick_interval = tick_interval

        self._monitoring = False
        self._on_status_change: Optional[StatusCallback] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._countdown_task: Optional[asyncio.Task] = None
        self._disconnected_at: Optional[float] = None
        self.state = ConnectionState()
        self.timed_out = False

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def is_counting_down(self) -> bool:
        return self._countdown_task is not None and not self._countdown_task.done()

    @property
    def countdown_task(self) -> Optional[asyncio.Task]:
        return self._countdown_task

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def start(self, on_status_change: StatusCallback):
        if self._monitoring:
            self._on_status_change = on_status_change
            return
        self._monitoring = True
        self.timed_out = False
        self._on_status_change = on_status_change
        self._unsubscribe = await self._reachability.subscribe(self._handle_reachability)
        logger.debug("Connection monitor started with %ss grace period", self._timeout_seconds)

    def stop(self):
        self._monitoring = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._clear_countdown()

    def update_timeout(self, seconds: float):
        # read on every tick, so a running countdown picks it up immediately
        self._timeout_seconds = max(0, seconds)

    def _handle_reachability(self, connected: bool):
        if not self._monitoring:
            return
        if connected:
            self._handle_reconnection()
        else:
            self._handle_disconnection()

    def _handle_disconnection(self):
        if self.is_counting_down:
            return
        self._disconnected_at = self._clock()
        logger.info("Connection lost, waiting up to %ss for reconnection", self._timeout_seconds)
        self._countdown_task = asyncio.get_running_loop().create_task(self._run_countdown())

    def _handle_reconnection(self):
        was_disconnected = self.is_counting_down
        self._clear_countdown()
        if was_disconnected:
            logger.info("Connection restored")
        self._emit(ConnectionState(is_connected=True, reconnect_time_remaining=0))

    async def _run_countdown(self):
        while self._monitoring:
            await self._sleep(self._tick_interval)
            if not self._monitoring:
                return
            if self.tick() <= 0:
                self.timed_out = True
                logger.warning("Reconnection grace period expired")
                self.stop()
                return

    def tick(self) -> float:
        """Emit the current countdown state and return the seconds remaining."""
        now = self._clock()
        elapsed = 0 if self._disconnected_at is None else now - self._disconnected_at
        remaining = max(0, self._timeout_seconds - elapsed)
        self._emit(ConnectionState(
            is_connected=False,
            reconnect_time_remaining=math.ceil(remaining),
        ))
        return remaining

    def _clear_countdown(self):
        task = self._countdown_task
        self._countdown_task = None
        self._disconnected_at = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _emit(self, state: ConnectionState):
        self.state = state
        if self._on_status_change is not None:
            self._on_status_change(state)
