"""Referral API v1 endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from flaneur.accounts.models import AccountKind, AccountRef
from flaneur.api.rate_limit import client_ip, limiter
from flaneur.logging_config import get_logger
from flaneur.referral.errors import (
    AccountNotFound,
    GenerationExhausted,
    InvalidInput,
    ReferralError,
    StoreUnavailable,
)
from flaneur.referral.service import ReferralService, referral_service

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class ReferralCodeResponse(BaseModel):
    """Response with an account's referral code."""
    code: str
    link: str


class ReferralStatsResponse(BaseModel):
    """Response with referral statistics."""
    code: str
    link: str
    clicks: int
    conversions: int
    pending: int


class TrackClickRequest(BaseModel):
    """Request to track a referral link click."""
    # Untyped: a bad payload is acknowledged, not rejected with 422
    code: Any = None


class ConvertRequest(BaseModel):
    """Request to attribute a signup to a referral code."""
    code: Any = None
    email: Any = None


class AckResponse(BaseModel):
    """Fire-and-forget acknowledgement."""
    ok: bool = True


class ResolveResponse(BaseModel):
    """Diagnostics view of a resolved account."""
    kind: AccountKind
    id: str


# ==================== DEPENDENCIES ====================


def get_referral_service() -> ReferralService:
    """Referral service used by the endpoints (overridable in tests)."""
    return referral_service


def _http_error(error: ReferralError) -> HTTPException:
    """Map an engine error to an HTTP error response."""
    if isinstance(error, InvalidInput):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, AccountNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, (GenerationExhausted, StoreUnavailable)):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Referral service temporarily unavailable",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


async def _read_payload(request: Request) -> dict[str, Any]:
    """JSON object body of a fire-and-forget request, or {} for anything else.

    A missing body, invalid JSON or a non-object payload is read as empty.
    """
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def current_profile_id(request: Request) -> str | None:
    """Profile id of the signed-in user, set on request.state by the host's auth layer."""
    return getattr(request.state, "profile_id", None)


def require_referrer(
    profile_id: str | None = Depends(current_profile_id),
    email: str | None = Query(default=None),
    token: str | None = Query(default=None),
    service: ReferralService = Depends(get_referral_service),
) -> AccountRef:
    """Identify the caller as a profile (session) or a subscriber (email + token).

    Session auth wins when both are present.
    """
    if profile_id:
        return AccountRef(kind=AccountKind.PROFILE, id=profile_id)

    if email and token:
        try:
            return service.authenticate_subscriber(email, token)
        except ReferralError as e:
            raise _http_error(e)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )


# ==================== ENDPOINTS ====================


@router.get("/code", response_model=ReferralCodeResponse)
@limiter.limit("30/minute")
async def get_referral_code(
    request: Request,
    account: AccountRef = Depends(require_referrer),
    service: ReferralService = Depends(get_referral_service),
):
    """Get the caller's referral code.

    Creates a new code if the account doesn't have one.
    """
    try:
        code = service.issue_code(account)
    except ReferralError as e:
        logger.warning("referral_code_request_failed", kind=account.kind.value, error=type(e).__name__)
        raise _http_error(e)

    return ReferralCodeResponse(code=code, link=service.referral_link(code))


@router.get("/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(
    account: AccountRef = Depends(require_referrer),
    service: ReferralService = Depends(get_referral_service),
):
    """Get click and conversion counts for the caller's code."""
    try:
        stats = service.get_stats(account)
    except ReferralError as e:
        raise _http_error(e)

    return ReferralStatsResponse(**stats)


@router.post("/track", response_model=AckResponse)
@limiter.limit("60/minute")
async def track_referral_click(
    request: Request,
    service: ReferralService = Depends(get_referral_service),
):
    """Track a click on a referral link.

    Called fire-and-forget when someone visits /invite?ref=CODE. Always 200.
    Body: ``TrackClickRequest``.
    """
    body = TrackClickRequest.model_validate(await _read_payload(request))
    service.track_click(body.code, client_ip(request))
    return AckResponse()


@router.post("/convert", response_model=AckResponse)
@limiter.limit("60/minute")
async def record_referral_conversion(
    request: Request,
    service: ReferralService = Depends(get_referral_service),
):
    """Record a conversion after a referred visitor subscribes.

    Called fire-and-forget after a successful subscribe. Always 200.
    Body: ``ConvertRequest``.
    """
    body = ConvertRequest.model_validate(await _read_payload(request))
    service.record_conversion(body.code, body.email)
    return AckResponse()


@router.get("/resolve", response_model=ResolveResponse)
@limiter.limit("30/minute")
async def resolve_referral(
    request: Request,
    q: str = Query(..., description="Referral code or email"),
    service: ReferralService = Depends(get_referral_service),
):
    """Resolve a code or email to the owning account (diagnostics)."""
    try:
        account = service.resolve(q)
    except ReferralError as e:
        raise _http_error(e)

    return ResolveResponse(kind=account.kind, id=account.id)
