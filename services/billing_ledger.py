import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from core.utils.core_enums import CallType
from core.utils.exceptions import SegmentLedgerError
from schemas.call_schema import BillingSegment, BillingSnapshot, SegmentRecord
from schemas.pricing_schema import PricingConfig

SECONDS_PER_MINUTE = Decimal(60)


def exact_seconds(delta: timedelta) -> Decimal:
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return max(Decimal(0), seconds)


def whole_seconds(seconds: Decimal) -> int:
    return int(seconds.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class BillingSegmentLedger:
    """
    Append-only list of call-type segments for a single call.

    At most one segment is open at a time. Closing a segment and opening
    the next one always share the same instant, so the segments cover the
    call without gaps or overlaps.
    """

    def __init__(self):
        self._segments: List[BillingSegment] = []

    @property
    def segments(self) -> List[BillingSegment]:
        return list(self._segments)

    @property
    def open_segment(self) -> Optional[BillingSegment]:
        if self._segments and self._segments[-1].is_open:
            return self._segments[-1]
        return None

    @property
    def current_type(self) -> Optional[CallType]:
        segment = self.open_segment
        return segment.call_type if segment else None

    def open(self, call_type: CallType, at: datetime) -> BillingSegment:
        if self.open_segment is not None:
            raise SegmentLedgerError("Previous billing segment is still open")
        if self._segments and at < self._segments[-1].end_instant:
            raise SegmentLedgerError("Billing segment cannot start before the previous one ended")
        segment = BillingSegment(call_type=call_type, start_instant=at)
        self._segments.append(segment)
        return segment

    def close_open_segment(self, at: datetime) -> Optional[BillingSegment]:
        segment = self.open_segment
        if segment is None:
            return None
        # never end before the segment started
        segment.end_instant = max(at, segment.start_instant)
        return segment

    def switch_type(self, new_type: CallType, at: datetime) -> bool:
        """Returns True when a new segment was opened."""
        current = self.open_segment
        if current is not None and current.call_type == new_type:
            return False
        closed = self.close_open_segment(at)
        self.open(new_type, closed.end_instant if closed else at)
        return True

    def reset(self):
        self._segments = []

    def _durations(self, reference: datetime):
        for segment in self._segments:
            end = segment.end_instant or max(reference, segment.start_instant)
            yield segment, end, exact_seconds(end - segment.start_instant)

    def snapshot(self, reference: datetime, pricing: PricingConfig) -> BillingSnapshot:
        coins_exact = Decimal(0)
        seconds_by_type = {CallType.AUDIO: Decimal(0), CallType.VIDEO: Decimal(0)}
        records = []

        for segment, end, duration in self._durations(reference):
            segment_coins = duration * pricing.rate_for(segment.call_type) / SECONDS_PER_MINUTE
            coins_exact += segment_coins
            seconds_by_type[segment.call_type] += duration
            records.append(SegmentRecord(
                call_type=segment.call_type,
                start_instant=segment.start_instant,
                end_instant=end,
                duration_seconds=whole_seconds(duration),
                coins_exact=segment_coins,
                coins_spent=math.ceil(segment_coins),
            ))

        return BillingSnapshot(
            reference_instant=reference,
            coins_exact=coins_exact,
            coins_spent_rounded=math.ceil(coins_exact),
            total_duration_seconds=whole_seconds(seconds_by_type[CallType.AUDIO] + seconds_by_type[CallType.VIDEO]),
            audio_seconds=whole_seconds(seconds_by_type[CallType.AUDIO]),
            video_seconds=whole_seconds(seconds_by_type[CallType.VIDEO]),
            segments=records,
        )

    def coins_due_for_started_minutes(self, reference: datetime, pricing: PricingConfig) -> Decimal:
        """
        Coins owed when every started minute of every segment is charged in
        full at that segment's rate.
        """
        due = Decimal(0)
        for segment, _end, duration in self._durations(reference):
            if duration <= 0:
                continue
            minutes_started = math.ceil(duration / SECONDS_PER_MINUTE)
            due += minutes_started * pricing.rate_for(segment.call_type)
        return due
