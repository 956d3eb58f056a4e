from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adpa.core.plugins import (
    DuplicatePluginError,
    PluginError,
    PluginNotFoundError,
    PluginValidationError,
)
from adpa.core.responses import error_response

PLUGIN_ERROR_STATUS = {
    PluginNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicatePluginError: status.HTTP_409_CONFLICT,
    PluginValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


async def unprocessable_entity_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) if error["loc"] else "general"
        errors.append({"field": field, "message": error["msg"]})

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "The received data is invalid. Please check the fields below for details.",
            "errors": errors,
        },
    )


async def plugin_exception_handler(request: Request, exc: PluginError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in PLUGIN_ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return error_response(exc.to_dict(), message=exc.message, status_code=status_code)
