from fastapi import HTTPException, status

from services.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidInput,
    NotFoundError,
    ServiceError,
    TeamExists,
)


def status_for(error: ServiceError) -> int:
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, (TeamExists, InvalidInput)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, (AlreadyExistsError, ConflictError)):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def http_error(error: ServiceError) -> HTTPException:
    return HTTPException(
        status_code=status_for(error),
        detail={"error": {"code": error.code, "message": error.message}},
    )


def internal_error(error: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": {"code": "UNKNOWN", "message": str(error)}},
    )
