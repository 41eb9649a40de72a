"""
Warehouse router for issuing and validating file access tokens.
"""

import logfire

from fastapi import APIRouter, Depends, HTTPException, Request, status

from typing import Annotated, Optional

from schema.warehouse import (
    DecodedToken,
    DecodeTokenRequest,
    FileAccess,
    FileAccessRequest,
    SetupStatusResponse,
)

from security.exceptions import AccessDeniedError, InvalidExpiryError, MalformedTokenError

from services.issuer import TokenIssuer
from services.setup import SetupBarrier
from services.validation import TokenValidator

router = APIRouter(
    prefix="/api/v1/warehouse",
    tags=["Warehouse"],
)


def get_setup_barrier(request: Request) -> SetupBarrier:
    """Return the setup barrier started by the application lifespan, or answer 503 without one."""
    barrier: Optional[SetupBarrier] = getattr(request.app.state, "setup_barrier", None)
    if barrier is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Warehouse setup has not been started",
        )
    return barrier


def get_token_issuer(
    request: Request, barrier: Annotated[SetupBarrier, Depends(get_setup_barrier)]
) -> TokenIssuer:
    """Return the token issuer, or answer 503 while the warehouse setup is still pending.

    The issuer is built once per resolved settings and kept on the application state.
    """
    if not barrier.ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Warehouse setup information has not been obtained yet",
        )

    issuer: Optional[TokenIssuer] = getattr(request.app.state, "token_issuer", None)
    if issuer is None or issuer.settings is not barrier.settings:
        issuer = TokenIssuer(barrier.settings)
        request.app.state.token_issuer = issuer
    return issuer


def get_private_key(request: Request) -> Optional[str]:
    """Return the warehouse private key configured for this application, if any."""
    return getattr(request.app.state, "private_key", None)


def get_token_validator(request: Request) -> TokenValidator:
    """Return a token validator using the configured encryption scheme."""
    barrier: Optional[SetupBarrier] = getattr(request.app.state, "setup_barrier", None)
    if barrier is None:
        return TokenValidator()
    return TokenValidator(barrier.options.encryption_scheme)


@router.post("/access", response_model=FileAccess, status_code=status.HTTP_201_CREATED)
async def create_file_access(
    payload: FileAccessRequest,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
):
    """This endpoint issues a token granting temporary access to a single warehouse file,
    together with the URL the bearer can use to fetch it.

    ## Possible Errors
    - 400 Bad Request: If `expires_at` is not in the future.
    - 503 Service Unavailable: If the warehouse setup information has not been obtained yet.
    """
    with logfire.span(f"Issuing file access for: {payload.file_id}"):
        try:
            return issuer.generate_file_access(payload.file_id, payload.expires_at)
        except InvalidExpiryError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/access/decode", response_model=DecodedToken, status_code=status.HTTP_200_OK)
async def decode_file_access(
    payload: DecodeTokenRequest,
    private_key: Annotated[Optional[str], Depends(get_private_key)],
    validator: Annotated[TokenValidator, Depends(get_token_validator)],
):
    """This endpoint decodes and validates a file access token with the warehouse private key.

    ## Possible Errors
    - 400 Bad Request: If the token is malformed or was not issued for this warehouse key.
    - 403 Forbidden: If the token has expired.
    - 503 Service Unavailable: If no private key is configured.
    """
    if private_key is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token validation is not configured",
        )

    try:
        return validator.decode_access_token(payload.token, private_key)
    except MalformedTokenError as e:
        logfire.warn(f"Rejected malformed access token: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.get("/setup", response_model=SetupStatusResponse, status_code=status.HTTP_200_OK)
async def get_setup_status(barrier: Annotated[SetupBarrier, Depends(get_setup_barrier)]):
    """This endpoint reports whether the warehouse setup information has been obtained."""
    if not barrier.ready:
        return SetupStatusResponse(ready=False)

    return SetupStatusResponse(ready=True, warehouse_name=barrier.settings.setup_info.warehouse_name)
