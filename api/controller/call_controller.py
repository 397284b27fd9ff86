from core.utils.core_enums import EndReason
from core.utils.pagination import HistoryPagination
from core.utils.response_mixin import CustomResponseMixin
from config.models.call_record_model import MongoCallRecordStore
from config.models.transaction_model import MongoTransactionLog
from services.call_registry import CallRegistry

response = CustomResponseMixin()

END_MESSAGES = {
    EndReason.TIMEOUT: "Call ended: Out of coins",
    EndReason.CONNECTION: "Call ended: Connection lost",
    EndReason.REMOTE: "Host ended the call.",
    EndReason.ERROR: "Call ended unexpectedly.",
}


def end_message(reason: EndReason, coins_spent: int) -> str:
    if reason == EndReason.USER:
        return f"Call ended. {coins_spent} coins spent." if coins_spent > 0 else "Call ended."
    return END_MESSAGES[reason]


async def validate_call(registry: CallRegistry, caller_id: str, host_id: str, is_video: bool):
    if registry.has_active_call(caller_id):
        return response.raise_exception("A call is already in progress", data={"caller_id": caller_id}, status_code=409)

    supervisor = registry.prepare(caller_id)
    result = await supervisor.validate(host_id, is_video)
    if not result.valid:
        registry.discard(caller_id)
        return response.error_message(result.error, status_code=400)

    return response.success_message("Call validated", data=result.model_dump())


async def start_call(registry: CallRegistry, caller_id: str, host_id: str, call_id: str, is_video: bool):
    supervisor = registry.get(caller_id)
    result = await supervisor.start(host_id=host_id, call_id=call_id, is_video=is_video)
    if not result.success:
        return response.error_message(result.error, status_code=400)

    return response.success_message("Call started", data={
        "call_id": call_id,
        "call_type": supervisor.manager.current_type,
        "coins_remaining": supervisor.manager.get_coins_remaining(),
    })


async def switch_call_type(registry: CallRegistry, caller_id: str, is_video: bool):
    supervisor = registry.get(caller_id)
    result = await supervisor.switch_type(is_video)
    if not result.success:
        return response.error_message(result.error, status_code=400)
    return response.success_message("Call type updated", data=result.model_dump())


async def billing_tick(registry: CallRegistry, caller_id: str):
    supervisor = registry.get(caller_id)
    tick = await supervisor.handle_tick()
    data = {
        "continue_call": supervisor.is_active,
        "tick": tick.model_dump() if tick else None,
        "connection": supervisor.connection_state.model_dump(),
    }
    if supervisor.end_result is not None:
        data["end"] = supervisor.end_result.model_dump()
        return response.success_message(
            end_message(supervisor.end_result.end_reason, supervisor.end_result.coins_spent), data=data
        )
    return response.success_message("Call can continue", data=data)


async def report_connectivity(registry: CallRegistry, caller_id: str, is_connected: bool):
    supervisor = registry.get(caller_id)
    supervisor.report_connectivity(is_connected)
    return response.success_message("Connectivity recorded", data={
        "continue_call": supervisor.is_active,
        "connection": supervisor.connection_state.model_dump(),
    })


async def end_call(registry: CallRegistry, caller_id: str, reason: EndReason = EndReason.USER):
    supervisor = registry.get(caller_id)
    result = await supervisor.finish(reason)
    if not result.success:
        return response.error_message(
            "Call ended, but billing confirmation failed.", data=result.model_dump(), status_code=500
        )
    return response.success_message(end_message(reason, result.coins_spent), data=result.model_dump())


async def get_billing_snapshot(registry: CallRegistry, caller_id: str):
    supervisor = registry.get(caller_id)
    snapshot = supervisor.manager.get_billing_snapshot()
    if snapshot is None:
        return response.raise_exception("Call has not started", status_code=400)
    return response.success_message("Billing snapshot", data={
        "snapshot": snapshot.model_dump(),
        "coins_remaining": supervisor.manager.get_coins_remaining(),
        "coins_debited": supervisor.manager.coins_already_debited,
    })


async def get_call_history(call_records: MongoCallRecordStore, caller_id: str, pagination: HistoryPagination):
    calls = await call_records.list_for_user(caller_id, skip=pagination.skip, limit=pagination.limit)
    return response.success_message("Call history", data={"calls": calls, "page": pagination.page})


async def get_transaction_history(transactions: MongoTransactionLog, caller_id: str, pagination: HistoryPagination):
    history = await transactions.list_for_user(caller_id, skip=pagination.skip, limit=pagination.limit)
    return response.success_message("Transaction history", data={
        "history": [item.model_dump() for item in history],
        "page": pagination.page,
    })
