"""Response envelope helpers. Stateless."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel


def respond_success(data: Any, status_code: int = 200) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "data": jsonable_encoder(data), "message": "success"},
    )


def respond_error(status_code: int, message: str) -> JSONResponse:
    """Build the error envelope."""
    return JSONResponse(status_code=status_code, content={"code": status_code, "message": message})
