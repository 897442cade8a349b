"""Response envelope shared by every cleanup route."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class Envelope[T](BaseModel):
    """``{success, message, statusCode, data, error}`` as returned by all routes."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    status_code: int = Field(default=200, alias="statusCode")
    data: T | None = None
    error: Any = None


def ok[T](data: T, message: str, *, status_code: int = 200) -> Envelope[T]:
    return Envelope[T](success=True, message=message, status_code=status_code, data=data)


def failure(status_code: int, message: str, *, error: object = None) -> JSONResponse:
    envelope = Envelope[None](
        success=False,
        message=message,
        status_code=status_code,
        error=error,
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True),
    )
