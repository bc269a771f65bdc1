"""Result -> HTTP response mapping shared by the partnership routes."""

from collections.abc import Callable
from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pairing.core.result import Result


def result_response(
    result: Result,
    transform: Callable[[Any], Any] | None = None,
    success_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Success => success_status with {success, data}; failure => the error's status."""
    if result.success and transform is not None:
        result = Result.ok(transform(result.data), result.message)
    return JSONResponse(
        status_code=success_status if result.success else result.http_status,
        content=jsonable_encoder(result.to_dict()),
    )
