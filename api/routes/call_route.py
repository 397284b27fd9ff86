from fastapi import APIRouter, Depends, Request, Query

from core.utils.pagination import HistoryPagination, history_pagination_params
from schemas.call_schema import (
    CallerRequest,
    ConnectivityRequest,
    EndCallRequest,
    StartCallRequest,
    SwitchCallTypeRequest,
    ValidateCallRequest,
)
from api.controller import call_controller

router = APIRouter(prefix="/user/call", tags=["call"])


def get_call_registry(request: Request):
    return request.app.state.call_registry


def get_call_record_store(request: Request):
    return request.app.state.call_record_store


def get_transaction_log(request: Request):
    return request.app.state.transaction_log


# Route to check balance and pricing before ringing the host
@router.post("/validate", response_model=dict)
async def validate_call_route(request: ValidateCallRequest, registry=Depends(get_call_registry)):
    return await call_controller.validate_call(
        registry,
        caller_id=request.caller_id,
        host_id=request.host_id,
        is_video=request.is_video,
    )


@router.post("/start", response_model=dict)
async def start_call_route(request: StartCallRequest, registry=Depends(get_call_registry)):
    return await call_controller.start_call(
        registry,
        caller_id=request.caller_id,
        host_id=request.host_id,
        call_id=request.call_id,
        is_video=request.is_video,
    )


@router.post("/switch-type", response_model=dict)
async def switch_call_type_route(request: SwitchCallTypeRequest, registry=Depends(get_call_registry)):
    return await call_controller.switch_call_type(registry, caller_id=request.caller_id, is_video=request.is_video)


# Route polled by the app while the call screen is open
@router.post("/tick", response_model=dict)
async def billing_tick_route(request: CallerRequest, registry=Depends(get_call_registry)):
    return await call_controller.billing_tick(registry, caller_id=request.caller_id)


@router.post("/connectivity", response_model=dict)
async def connectivity_route(request: ConnectivityRequest, registry=Depends(get_call_registry)):
    return await call_controller.report_connectivity(
        registry, caller_id=request.caller_id, is_connected=request.is_connected
    )


@router.post("/end", response_model=dict)
async def end_call_route(request: EndCallRequest, registry=Depends(get_call_registry)):
    return await call_controller.end_call(registry, caller_id=request.caller_id, reason=request.reason)


@router.get("/snapshot", response_model=dict)
async def billing_snapshot_route(caller_id: str = Query(...), registry=Depends(get_call_registry)):
    return await call_controller.get_billing_snapshot(registry, caller_id=caller_id)


@router.get("/history", response_model=dict)
async def call_history_route(
    caller_id: str = Query(...),
    pagination: HistoryPagination = Depends(history_pagination_params),
    call_records=Depends(get_call_record_store),
):
    return await call_controller.get_call_history(call_records, caller_id=caller_id, pagination=pagination)


@router.get("/transactions", response_model=dict)
async def transaction_history_route(
    caller_id: str = Query(...),
    pagination: HistoryPagination = Depends(history_pagination_params),
    transactions=Depends(get_transaction_log),
):
    return await call_controller.get_transaction_history(transactions, caller_id=caller_id, pagination=pagination)
