# credit/api/errors.py

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from credit.services.exceptions import (
    AllocationConflictError,
    CreditServiceError,
    CreditValidationError,
    NotFoundError,
    OverAllocationError,
    ReferenceConflictError,
)


def error_response(*, code: str, message: str, http_status: int, **details):
    """
    Canonical API error response.
    """
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return Response({"error": body}, status=http_status)


def service_error_response(exc: CreditServiceError):
    """
    Map a credit service error onto its HTTP status.
    """
    if isinstance(exc, OverAllocationError):
        return error_response(
            code=exc.code,
            message=str(exc),
            http_status=status.HTTP_409_CONFLICT,
            sale_id=str(exc.sale_id),
            requested=str(exc.requested),
            remaining=str(exc.remaining),
        )

    if isinstance(exc, (ReferenceConflictError, AllocationConflictError)):
        return error_response(code=exc.code, message=str(exc), http_status=status.HTTP_409_CONFLICT)

    if isinstance(exc, NotFoundError):
        return error_response(code=exc.code, message=str(exc), http_status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, CreditValidationError):
        return error_response(code=exc.code, message=str(exc), http_status=status.HTTP_400_BAD_REQUEST)

    return error_response(
        code=exc.code,
        message=str(exc),
        http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
