import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.utils.core_enums import CallType
from core.utils.exceptions import SegmentLedgerError
from services.billing_ledger import BillingSegmentLedger
from services.pricing_service import resolve_pricing

T0 = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def pricing():
    return resolve_pricing({"audio_cost_per_minute": 10, "video_cost_per_minute": 15})


def at(seconds):
    return T0 + timedelta(seconds=seconds)


def test_segments_cover_call_without_gaps_or_overlaps():
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(0))
    switches = [(13, CallType.VIDEO), (40, CallType.AUDIO), (41, CallType.VIDEO), (100, CallType.AUDIO)]
    for seconds, call_type in switches:
        ledger.switch_type(call_type, at(seconds))
    ledger.close_open_segment(at(250))

    segments = ledger.segments
    assert len(segments) == 5
    assert segments[0].start_instant == at(0)
    assert segments[-1].end_instant == at(250)
    for previous, current in zip(segments, segments[1:]):
        assert previous.end_instant == current.start_instant
    covered = sum((s.end_instant - s.start_instant for s in segments), timedelta())
    assert covered == timedelta(seconds=250)


def test_switch_to_same_type_is_noop():
    ledger = BillingSegmentLedger()
    ledger.open(CallType.VIDEO, at(0))
    assert ledger.switch_type(CallType.VIDEO, at(30)) is False
    assert len(ledger.segments) == 1
    assert ledger.open_segment.end_instant is None


def test_only_one_open_segment():
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(0))
    with pytest.raises(SegmentLedgerError):
        ledger.open(CallType.VIDEO, at(5))


def test_close_is_idempotent():
    ledger = BillingSegmentLedger()
    assert ledger.close_open_segment(at(0)) is None
    ledger.open(CallType.AUDIO, at(0))
    ledger.close_open_segment(at(10))
    assert ledger.close_open_segment(at(20)) is None
    assert ledger.segments[0].end_instant == at(10)
    assert ledger.current_type is None


def test_snapshot_prices_each_segment_at_its_own_rate(pricing):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(0))
    ledger.switch_type(CallType.VIDEO, at(90))
    ledger.close_open_segment(at(210))

    snapshot = ledger.snapshot(at(210), pricing)
    assert snapshot.coins_exact == Decimal(45)
    assert snapshot.coins_spent_rounded == 45
    assert snapshot.total_duration_seconds == 210
    assert snapshot.audio_seconds == 90
    assert snapshot.video_seconds == 120
    assert [s.coins_spent for s in snapshot.segments] == [15, 30]


def test_snapshot_measures_open_segment_to_reference(pricing):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.VIDEO, at(0))
    snapshot = ledger.snapshot(at(30), pricing)
    assert snapshot.coins_exact == Decimal("7.5")
    assert snapshot.coins_spent_rounded == 8
    assert snapshot.segments[0].end_instant == at(30)


def test_snapshot_before_start_is_zero(pricing):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(10))
    snapshot = ledger.snapshot(at(0), pricing)
    assert snapshot.coins_exact == 0
    assert snapshot.total_duration_seconds == 0


@pytest.mark.parametrize("seconds", [1, 29, 59, 61, 119, 3599])
def test_ceiling_never_underbills(pricing, seconds):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.VIDEO, at(0))
    snapshot = ledger.snapshot(at(seconds), pricing)
    exact = Decimal(seconds) / 60 * Decimal(15)
    assert snapshot.segments[0].coins_spent >= exact
    assert snapshot.coins_spent_rounded == math.ceil(snapshot.coins_exact)


def test_fractional_seconds_are_kept_exact(pricing):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(0))
    snapshot = ledger.snapshot(at(0) + timedelta(milliseconds=6500), pricing)
    assert snapshot.coins_exact == Decimal("6.5") * 10 / 60
    assert snapshot.coins_spent_rounded == 2
    assert snapshot.total_duration_seconds == 7


def test_started_minutes_charge_full_minute_per_segment(pricing):
    ledger = BillingSegmentLedger()
    ledger.open(CallType.AUDIO, at(0))
    assert ledger.coins_due_for_started_minutes(at(0), pricing) == 0
    assert ledger.coins_due_for_started_minutes(at(1), pricing) == 10

    ledger.switch_type(CallType.VIDEO, at(90))
    # audio: 2 started minutes, video: 1 started minute
    assert ledger.coins_due_for_started_minutes(at(91), pricing) == 35
