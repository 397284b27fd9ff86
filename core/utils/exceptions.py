# exceptions.py

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Optional


# class for CustomValidationError
class CustomValidationError(HTTPException):
    def __init__(self, message: str, data: Optional[dict] = None, status_code: int = 400):
        self.message = message if message else "Something went wrong"
        self.data = data if isinstance(data, dict) else {}
        self.success = False
        self.status_code = status_code

        super().__init__(
            status_code=status_code,
            detail={
                "message": self.message,
                "data": self.data,
                "success": self.success,
                "status_code": self.status_code
            }
        )


class SegmentLedgerError(Exception):
    """Raised when a billing segment operation breaks the ledger ordering."""


class CallNotActiveError(Exception):
    """Raised by the call registry when no call is in progress for a caller."""

    def __init__(self, caller_id: str):
        self.caller_id = caller_id
        super().__init__(f"No active call for caller {caller_id}")


# Exception handler for CustomValidationError
async def custom_validation_error_handler(request: Request, exc: CustomValidationError):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
    )


async def call_not_active_handler(request: Request, exc: CallNotActiveError):
    return JSONResponse(
        status_code=404,
        content={
            "message": "No active call found",
            "data": {"caller_id": exc.caller_id},
            "success": False,
            "status_code": 404,
        },
    )


# Custom exception handler for validation errors
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    # Extract field names and error messages
    formatted_errors = {err["loc"][-1]: err["msg"] for err in errors}

    return JSONResponse(
        content={
            "message": "Validation Error",
            "data": {"errors": formatted_errors},
            "success": False
        },
        status_code=422
    )
