import asyncio
import math
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Protocol

from core.utils.core_enums import CallState, CallType, EndReason
from core.utils.helper import utc_now, whole_minutes
from core.utils.logging_config import get_logger
from schemas.call_schema import (
    BillingSnapshot,
    BillingSyncResult,
    BillingTick,
    CallSegmentBreakdown,
    CreateCallRecord,
    EndCallResult,
    StartCallResult,
    SwitchCallTypeResult,
    ValidateCallResult,
)
from schemas.pricing_schema import HostPricingOverride, PricingConfig
from schemas.transaction_schema import CreateCallTransaction
from services.billing_ledger import BillingSegmentLedger
from services.duration_service import can_start_call, is_low_balance, max_duration_seconds, seconds_remaining
from services.pricing_service import resolve_pricing

logger = get_logger(__name__)

COINS_EXHAUSTED = Decimal("0.01")


# ---------------- Collaborators ----------------

class WalletStore(Protocol):
    async def get_balance(self, user_id: str) -> Optional[Decimal]: ...

    async def adjust_balance(self, user_id: str, delta: Decimal) -> Decimal: ...


class CallRecordStore(Protocol):
    async def create(self, record: CreateCallRecord) -> str: ...

    async def update_progress(self, record_id: str, duration_seconds: Optional[int] = None,
                              coins_spent: Optional[int] = None) -> None: ...

    async def update_type(self, record_id: str, call_type: CallType) -> None: ...

    async def finalize(self, record_id: str, duration_seconds: int, coins_spent: int,
                       segments: List[CallSegmentBreakdown], end_reason: EndReason) -> None: ...


class HostDirectory(Protocol):
    async def get_by_id(self, host_id: str) -> Optional[HostPricingOverride]: ...


class TransactionLog(Protocol):
    async def record(self, transaction: CreateCallTransaction) -> str: ...


class PricingConfigSource(Protocol):
    async def get_global_pricing(self) -> Optional[dict]: ...


# ---------------- Session ----------------

class CallSession:
    def __init__(self, wallet_owner_id: str, host_id: str, available_coins: Decimal,
                 pricing: PricingConfig, call_type: CallType):
        self.wallet_owner_id = wallet_owner_id
        self.host_id = host_id
        self.available_coins_at_start = available_coins
        self.pricing = pricing
        self.current_type = call_type
        self.call_id: Optional[str] = None
        self.call_record_id: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.ledger = BillingSegmentLedger()
        self.coins_already_debited = Decimal(0)
        self.billing_in_flight = False
        self.billing_idle = asyncio.Event()
        self.billing_idle.set()


def describe_call_usage(audio_seconds: int, video_seconds: int) -> str:
    parts = []
    if video_seconds > 0:
        parts.append(f"Video call - {whole_minutes(video_seconds)} minutes")
    if audio_seconds > 0:
        parts.append(f"Audio call - {whole_minutes(audio_seconds)} minutes")
    if not parts:
        return "Call - 0 minutes"
    return ", ".join(parts)


class CallManager:
    """
    Billing core for one caller's call.

    Lifecycle: validate_call -> start_call -> (switch_call_type |
    sync_incremental_billing | tick)* -> end_call. Every public operation
    returns a result object; unexpected errors are logged and turned into a
    failure result so the manager always lands in a defined state.
    """

    def __init__(
        self,
        wallet_store: WalletStore,
        call_record_store: CallRecordStore,
        host_directory: HostDirectory,
        transaction_log: TransactionLog,
        pricing_source: Optional[PricingConfigSource] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._wallets = wallet_store
        self._call_records = call_record_store
        self._hosts = host_directory
        self._transactions = transaction_log
        self._pricing_source = pricing_source
        self._clock = clock
        self.state = CallState.IDLE
        self._session: Optional[CallSession] = None

    # ---------------- Accessors ----------------

    @property
    def session(self) -> Optional[CallSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self.state == CallState.ACTIVE and self._session is not None

    @property
    def pricing(self) -> Optional[PricingConfig]:
        return self._session.pricing if self._session else None

    @property
    def current_type(self) -> Optional[CallType]:
        return self._session.current_type if self._session else None

    @property
    def coins_already_debited(self) -> Decimal:
        return self._session.coins_already_debited if self._session else Decimal(0)

    def _reset(self, state: CallState = CallState.IDLE):
        self._session = None
        self.state = state

    # ---------------- Lifecycle ----------------

    async def validate_call(self, caller_id: str, host_id: str, is_video: bool) -> ValidateCallResult:
        self._reset()
        try:
            balance = await self._wallets.get_balance(caller_id)
            if balance is None:
                return ValidateCallResult(valid=False, error="User profile not found")

            host = await self._hosts.get_by_id(host_id)
            global_pricing = None
            if self._pricing_source is not None:
                global_pricing = await self._pricing_source.get_global_pricing()
            pricing = resolve_pricing(global_pricing, host)

            call_type = CallType.from_flag(is_video)
            rate = pricing.rate_for(call_type)
            eligibility = can_start_call(balance, rate, pricing.minimum_duration_seconds)
            if not eligibility.allowed:
                return ValidateCallResult(valid=False, error=eligibility.reason)

            self._session = CallSession(
                wallet_owner_id=caller_id,
                host_id=host_id,
                available_coins=balance,
                pricing=pricing,
                call_type=call_type,
            )
            self.state = CallState.VALIDATED
            return ValidateCallResult(
                valid=True,
                max_duration=max_duration_seconds(balance, rate),
                pricing=pricing,
                wallet_balance=balance,
            )
        except Exception:
            logger.exception("Call validation error for caller %s", caller_id)
            self._reset()
            return ValidateCallResult(valid=False, error="Failed to validate call")

    async def start_call(self, caller_id: str, host_id: str, call_id: str, is_video: bool) -> StartCallResult:
        session = self._session
        if self.state != CallState.VALIDATED or session is None:
            return StartCallResult(success=False, error="Call has not been validated")
        if session.wallet_owner_id != caller_id or session.host_id != host_id:
            return StartCallResult(success=False, error="Call was validated for a different caller or host")

        call_type = CallType.from_flag(is_video)
        if call_type != session.current_type:
            return StartCallResult(success=False, error="Call type does not match the validated call")

        started_at = self._clock()
        try:
            record_id = await self._call_records.create(CreateCallRecord(
                call_id=call_id,
                user_id=caller_id,
                host_id=host_id,
                call_type=call_type,
                start_time=started_at,
            ))
        except Exception:
            logger.exception("Start call error for call %s", call_id)
            return StartCallResult(success=False, error="Failed to start call")

        session.call_id = call_id
        session.call_record_id = record_id
        session.started_at = started_at
        session.current_type = call_type
        session.coins_already_debited = Decimal(0)
        session.ledger.open(call_type, started_at)
        self.state = CallState.ACTIVE
        logger.info("Call %s started as %s for caller %s", call_id, call_type.value, caller_id)
        return StartCallResult(success=True)

    async def switch_call_type(self, is_video: bool) -> SwitchCallTypeResult:
        session = self._session
        if not self.is_active:
            return SwitchCallTypeResult(success=False, error="No active call")

        new_type = CallType.from_flag(is_video)
        if new_type == session.current_type:
            return SwitchCallTypeResult(success=True, call_type=new_type)

        try:
            now = self._clock()
            # bill the old segment up to now before the new rate applies
            sync = await self.sync_incremental_billing(now)
            if not sync.success:
                logger.warning("Billing sync before type switch failed: %s", sync.error)

            session.ledger.switch_type(new_type, now)
            session.current_type = new_type
        except Exception:
            logger.exception("Switch call type error for call %s", session.call_id)
            return SwitchCallTypeResult(success=False, call_type=session.current_type, error="Failed to switch call type")

        try:
            await self._call_records.update_type(session.call_record_id, new_type)
        except Exception as e:
            logger.warning("Could not update call type on record %s: %s", session.call_record_id, e)

        return SwitchCallTypeResult(success=True, call_type=new_type, coins_deducted=sync.coins_deducted)

    async def sync_incremental_billing(self, reference: Optional[datetime] = None) -> BillingSyncResult:
        if not self.is_active:
            return BillingSyncResult(success=True)
        return await self._sync(self._session, reference)

    async def _sync(self, session: CallSession, reference: Optional[datetime] = None) -> BillingSyncResult:
        if session.billing_in_flight:
            return BillingSyncResult(success=True)

        session.billing_in_flight = True
        session.billing_idle.clear()
        try:
            reference = reference or self._clock()
            coins_due = Decimal(math.ceil(session.ledger.coins_due_for_started_minutes(reference, session.pricing)))
            incremental = coins_due - session.coins_already_debited
            if incremental <= 0:
                return BillingSyncResult(success=True)

            available = session.available_coins_at_start - session.coins_already_debited
            if available < incremental:
                logger.warning(
                    "Insufficient balance for incremental billing on call %s: need %s, have %s",
                    session.call_id, incremental, available,
                )
                return BillingSyncResult(success=False, error="Insufficient wallet balance for incremental billing")

            snapshot = session.ledger.snapshot(reference, session.pricing)
            try:
                await self._call_records.update_progress(
                    session.call_record_id,
                    duration_seconds=snapshot.total_duration_seconds,
                    coins_spent=int(coins_due),
                )
            except Exception as e:
                logger.warning("Could not push billing progress for record %s: %s", session.call_record_id, e)

            await self._wallets.adjust_balance(session.wallet_owner_id, -incremental)
            session.coins_already_debited += incremental
            logger.debug("Debited %s coins on call %s (total %s)", incremental, session.call_id, session.coins_already_debited)
            return BillingSyncResult(success=True, coins_deducted=incremental)
        except Exception:
            logger.exception("Incremental billing failed for call %s", session.call_id)
            return BillingSyncResult(success=False, error="Failed to sync billing")
        finally:
            session.billing_in_flight = False
            session.billing_idle.set()

    async def end_call(self, caller_id: str, reason: EndReason = EndReason.USER) -> EndCallResult:
        session = self._session
        if self.state == CallState.ENDING:
            return EndCallResult(success=False, coins_spent=0, end_reason=reason)
        if not self.is_active:
            self._reset(CallState.ENDED)
            return EndCallResult(success=False, coins_spent=0, end_reason=reason)

        # leave ACTIVE before the first await so switches and syncs stop here
        self.state = CallState.ENDING
        try:
            # let a pending debit land before settling
            await session.billing_idle.wait()

            ended_at = self._clock()
            session.ledger.close_open_segment(ended_at)
            final_sync = await self._sync(session, ended_at)
            if not final_sync.success:
                logger.warning("Final billing sync failed for call %s: %s", session.call_id, final_sync.error)

            snapshot = session.ledger.snapshot(ended_at, session.pricing)
            coins_spent = snapshot.coins_spent_rounded
            outstanding = Decimal(coins_spent) - session.coins_already_debited
            if outstanding != 0:
                await self._wallets.adjust_balance(session.wallet_owner_id, -outstanding)
                session.coins_already_debited += outstanding

            try:
                await self._call_records.finalize(
                    session.call_record_id,
                    duration_seconds=snapshot.total_duration_seconds,
                    coins_spent=coins_spent,
                    segments=[
                        CallSegmentBreakdown(
                            call_type=record.call_type,
                            start_time=record.start_instant,
                            end_time=record.end_instant,
                            duration=record.duration_seconds,
                            coins_spent=record.coins_spent,
                        )
                        for record in snapshot.segments
                    ],
                    end_reason=reason,
                )
            except Exception as e:
                logger.warning("Could not finalize call record %s: %s", session.call_record_id, e)

            await self._transactions.record(CreateCallTransaction(
                user_id=session.wallet_owner_id,
                amount=-Decimal(coins_spent),
                description=describe_call_usage(snapshot.audio_seconds, snapshot.video_seconds),
                reference=session.call_id,
            ))

            logger.info(
                "Call %s ended (%s): %ss, %s coins, settlement delta %s",
                session.call_id, reason.value, snapshot.total_duration_seconds, coins_spent, outstanding,
            )
            return EndCallResult(success=True, coins_spent=coins_spent, end_reason=reason)
        except Exception:
            logger.exception("End call error for caller %s", caller_id)
            return EndCallResult(success=False, coins_spent=0, end_reason=reason)
        finally:
            self._reset(CallState.ENDED)

    # ---------------- Read side ----------------

    def get_billing_snapshot(self, reference: Optional[datetime] = None) -> Optional[BillingSnapshot]:
        if not self.is_active:
            return None
        return self._session.ledger.snapshot(reference or self._clock(), self._session.pricing)

    def get_coins_remaining(self, reference: Optional[datetime] = None) -> Decimal:
        session = self._session
        if session is None:
            return Decimal(0)
        if self.state == CallState.VALIDATED:
            return session.available_coins_at_start
        snapshot = session.ledger.snapshot(reference or self._clock(), session.pricing)
        return max(Decimal(0), session.available_coins_at_start - snapshot.coins_exact)

    async def tick(self, reference: Optional[datetime] = None) -> BillingTick:
        """
        One scheduled billing step: sync the wallet, then report how much talk
        time is left and whether the call has run out of coins.
        """
        reference = reference or self._clock()
        sync = await self.sync_incremental_billing(reference)
        if not self.is_active:
            return BillingTick(coins_remaining=Decimal(0), seconds_remaining=0, is_low_balance=False, sync=sync)

        session = self._session
        coins_remaining = self.get_coins_remaining(reference)
        remaining = seconds_remaining(coins_remaining, session.pricing.rate_for(session.current_type))
        exhausted = coins_remaining <= COINS_EXHAUSTED
        return BillingTick(
            coins_remaining=coins_remaining,
            seconds_remaining=remaining,
            is_low_balance=is_low_balance(remaining, session.pricing.warning_threshold_seconds),
            should_end=exhausted,
            end_reason=EndReason.TIMEOUT if exhausted else None,
            sync=sync,
        )
