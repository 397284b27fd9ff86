import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

os.environ.setdefault("LOG_TO_FILE", "false")

from apscheduler.jobstores.base import JobLookupError

from schemas.pricing_schema import HostPricingOverride
from services.call_manager import CallManager


class FakeClock:
    """Wall clock for the billing core, moved by hand."""

    def __init__(self, start=datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeTimer:
    """Monotonic clock plus a sleep that moves it forward instantly."""

    def __init__(self):
        self.now = 0.0

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds
        await asyncio.sleep(0)


class FakeWalletStore:
    def __init__(self, balances=None, fail_adjust=False):
        self.balances = {user: Decimal(str(value)) for user, value in (balances or {}).items()}
        self.adjustments = []
        self.fail_adjust = fail_adjust
        self.fail_get = False
        self.gate = None

    async def get_balance(self, user_id):
        if self.fail_get:
            raise ConnectionError("wallet store unavailable")
        return self.balances.get(user_id)

    async def adjust_balance(self, user_id, delta):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_adjust:
            raise ConnectionError("wallet write failed")
        self.adjustments.append(delta)
        self.balances[user_id] = self.balances[user_id] + delta
        return self.balances[user_id]


class FakeCallRecordStore:
    def __init__(self):
        self.records = {}
        self.progress = []
        self.fail_create = False
        self.fail_progress = False
        self.fail_update_type = False
        self.fail_finalize = False
        self.finalize_gate = None

    async def create(self, record):
        if self.fail_create:
            raise ConnectionError("record create failed")
        record_id = f"rec-{len(self.records) + 1}"
        self.records[record_id] = record.model_dump()
        return record_id

    async def update_progress(self, record_id, duration_seconds=None, coins_spent=None):
        if self.fail_progress:
            raise ConnectionError("progress update failed")
        self.progress.append((record_id, duration_seconds, coins_spent))

    async def update_type(self, record_id, call_type):
        if self.fail_update_type:
            raise ConnectionError("type update failed")
        self.records[record_id]["call_type"] = call_type.value

    async def finalize(self, record_id, duration_seconds, coins_spent, segments, end_reason):
        if self.finalize_gate is not None:
            await self.finalize_gate.wait()
        if self.fail_finalize:
            raise ConnectionError("finalize failed")
        self.records[record_id].update({
            "status": "completed",
            "duration": duration_seconds,
            "coins_spent": coins_spent,
            "segments": [segment.model_dump() for segment in segments],
            "end_reason": end_reason.value,
        })

    async def list_for_user(self, user_id, skip=0, limit=20):
        calls = [dict(record, _id=record_id) for record_id, record in self.records.items()
                 if record["user_id"] == user_id]
        return calls[skip:skip + limit]


class FakeHostDirectory:
    def __init__(self, hosts=None):
        self.hosts = hosts or {}

    async def get_by_id(self, host_id):
        return self.hosts.get(host_id)


class FakeTransactionLog:
    def __init__(self):
        self.transactions = []

    async def record(self, transaction):
        self.transactions.append(transaction)
        return f"txn-{len(self.transactions)}"

    async def list_for_user(self, user_id, skip=0, limit=50):
        return []


class FakePricingSource:
    def __init__(self, config=None):
        self.config = config

    async def get_global_pricing(self):
        return self.config


class FakeScheduler:
    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger, id=None, **kwargs):
        self.jobs[id] = (func, trigger, kwargs)

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def wallets():
    return FakeWalletStore({"caller-1": 200})


@pytest.fixture
def call_records():
    return FakeCallRecordStore()


@pytest.fixture
def hosts():
    return FakeHostDirectory({
        "host-1": HostPricingOverride(
            host_id="host-1",
            audio_cost_per_minute=Decimal(10),
            video_cost_per_minute=Decimal(15),
        ),
    })


@pytest.fixture
def transactions():
    return FakeTransactionLog()


@pytest.fixture
def pricing_source():
    return FakePricingSource({
        "audio_cost_per_minute": 10,
        "video_cost_per_minute": 60,
        "minimum_duration_seconds": 60,
        "warning_threshold_seconds": 60,
        "reconnection_timeout_seconds": 45,
    })


@pytest.fixture
def manager_factory(wallets, call_records, hosts, transactions, pricing_source, clock):
    def build():
        return CallManager(
            wallet_store=wallets,
            call_record_store=call_records,
            host_directory=hosts,
            transaction_log=transactions,
            pricing_source=pricing_source,
            clock=clock,
        )
    return build


@pytest.fixture
def manager(manager_factory):
    return manager_factory()
