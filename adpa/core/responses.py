"""Standardized API response helpers.

All API endpoints should use these functions to ensure a consistent response
format across the application.

Success: {"status": "success", "message": "...", "data": ...}
Error:   {"status": "error", "message": "...", "error": ...}
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(
    data: Any,
    message: str = "Request was successful",
    status_code: int = 200,
) -> JSONResponse:
    return JSONResponse(
        content=jsonable_encoder(
            {"status": "success", "message": message, "data": data}
        ),
        status_code=status_code,
    )


def error_response(
    error: Any,
    message: str = "An error occurred",
    status_code: int = 400,
) -> JSONResponse:
    return JSONResponse(
        content=jsonable_encoder({"status": "error", "message": message, "error": error}),
        status_code=status_code,
    )
