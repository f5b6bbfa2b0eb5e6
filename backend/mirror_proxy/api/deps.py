from fastapi import Depends, HTTPException, Request, status

from mirror_proxy.services.auth import AuthOutcome, Authenticator
from mirror_proxy.services.mirror import MirrorService

SIGNATURE_HEADER = "Authorization"

_FAILURE_DETAILS = {
    status.HTTP_401_UNAUTHORIZED: "Missing request signature",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Authentication is not configured",
}


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_mirror_service(request: Request) -> MirrorService:
    return request.app.state.mirror_service


async def require_authentication(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
) -> bytes:
    """Authenticate the request and hand back its raw body bytes."""
    body = await request.body()
    outcome = authenticator.authenticate(
        source_ip=request.headers.get(authenticator.config.client_ip_header),
        signature_b64=request.headers.get(SIGNATURE_HEADER),
        body=body,
    )
    if outcome is not AuthOutcome.AUTHENTICATED:
        raise HTTPException(
            status_code=outcome.status_code,
            detail=_FAILURE_DETAILS[outcome.status_code],
        )
    return body
