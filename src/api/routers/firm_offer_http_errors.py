from typing import NoReturn

from fastapi import HTTPException, status

from src.core.firm_offers import (
    AlreadyDecidedError,
    FirmOfferNotFoundError,
    InvalidTransitionError,
    MissingRequiredFieldError,
    TokenNotFoundError,
)

# Starlette renamed the 422 constant; older releases only ship the ENTITY spelling.
HTTP_422_UNPROCESSABLE = getattr(
    status,
    "HTTP_422_UNPROCESSABLE_CONTENT",
    status.HTTP_422_UNPROCESSABLE_ENTITY,
)


def raise_firm_offer_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, (FirmOfferNotFoundError, TokenNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (InvalidTransitionError, AlreadyDecidedError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, MissingRequiredFieldError):
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=str(exc),
        ) from exc
    raise exc
