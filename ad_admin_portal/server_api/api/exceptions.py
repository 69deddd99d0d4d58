from __future__ import annotations
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from ..directory import (
    AccessDeniedError,
    AlreadyExistsError,
    DirectoryError,
    NotFoundError,
    RejectedError,
)


class ErrorResponse(BaseModel):
    detail: str


not_authorized_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="User is not authorized to perform this action",
    headers={"WWW-Authenticate": "Bearer"},
)


def response_description(description: str):
    return {
        "model": ErrorResponse,
        "description": description,
        "content": {"application/json": {"example": {"detail": description}}},
    }


response_with_perm_check = {
    "model": ErrorResponse,
    "description": "Unauthorized: invalid token or not an administrator",
    "content": {
        "application/json": {
            "examples": {
                "invalid_credentials": {
                    "summary": "Invalid token",
                    "value": {"detail": "Could not validate credentials"},
                },
                "not_permitted": {
                    "summary": "Not permitted",
                    "value": {
                        "detail": "User is not authorized to perform this action"
                    },
                },
            }
        }
    },
}

response_directory_unavailable = response_description(
    "Directory operation failed"
)

_status_for_error: dict[type[DirectoryError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    RejectedError: status.HTTP_400_BAD_REQUEST,
}


def status_for_error(error: DirectoryError) -> int:
    for error_type in type(error).__mro__:
        if error_type in _status_for_error:
            return _status_for_error[error_type]
    return status.HTTP_502_BAD_GATEWAY


async def directory_error_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    assert isinstance(exc, DirectoryError), exc
    return JSONResponse(
        status_code=status_for_error(exc), content={"detail": exc.message}
    )
