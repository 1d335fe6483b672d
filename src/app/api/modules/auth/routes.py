from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.modules.auth.schema import (
    ActivityResponse,
    DeviceCountResponse,
    DeviceSessionListResponse,
    DeviceSessionResponse,
    LoginAttemptListResponse,
    LoginAttemptPaginationParams,
    LoginRequest,
    LoginResponse,
    OtpChallengeResponse,
    OtpCountdownResponse,
    OtpResendRequest,
    OtpVerifyRequest,
    RevokeResponse,
    SecurityStatsResponse,
    TrustAssessmentResponse,
)
from app.api.modules.auth.service import AuthFacadeService
from app.api.modules.auth.services.identity import CurrentAccount
from app.api.modules.auth.services.network import (
    RequestIpResolver,
    get_request_fingerprint,
)

router = APIRouter(route_class=DishkaRoute)

bearer_scheme = HTTPBearer(auto_error=False)


async def _current_account(
    facade: AuthFacadeService,
    credentials: HTTPAuthorizationCredentials | None,
) -> CurrentAccount:
    return await facade.current_account(
        credentials.credentials if credentials else None
    )


@router.post("/login", response_model=LoginResponse, status_code=200)
async def login(
    request: Request,
    payload: LoginRequest,
    facade: FromDishka[AuthFacadeService],
    ip_resolver: FromDishka[RequestIpResolver],
) -> LoginResponse:
    return await facade.login(
        email=payload.email,
        password=payload.password,
        fingerprint_raw=get_request_fingerprint(request),
        source_ip=ip_resolver.get_request_ip(request),
    )


@router.post("/otp/verify", response_model=LoginResponse, status_code=200)
async def verify_otp(
    payload: OtpVerifyRequest,
    facade: FromDishka[AuthFacadeService],
) -> LoginResponse:
    return await facade.verify_otp(login_id=payload.login_id, code=payload.code)


@router.post("/otp/resend", response_model=OtpChallengeResponse, status_code=200)
async def resend_otp(
    payload: OtpResendRequest,
    facade: FromDishka[AuthFacadeService],
) -> OtpChallengeResponse:
    return await facade.resend_otp(payload.login_id)


@router.get("/otp/{login_id}", response_model=OtpCountdownResponse, status_code=200)
async def get_otp_countdown(
    login_id: str,
    facade: FromDishka[AuthFacadeService],
) -> OtpCountdownResponse:
    return await facade.otp_countdown(login_id)


@router.get("/devices", response_model=DeviceSessionListResponse, status_code=200)
async def list_devices(
    request: Request,
    facade: FromDishka[AuthFacadeService],
    include_location: bool = Query(True),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> DeviceSessionListResponse:
    account = await _current_account(facade, credentials)
    return await facade.list_devices(
        account,
        fingerprint_raw=get_request_fingerprint(request),
        include_location=include_location,
    )


@router.get("/devices/count", response_model=DeviceCountResponse, status_code=200)
async def count_devices(
    facade: FromDishka[AuthFacadeService],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> DeviceCountResponse:
    account = await _current_account(facade, credentials)
    return DeviceCountResponse(total=await facade.count_devices(account))


@router.post("/devices/heartbeat", response_model=DeviceSessionResponse, status_code=200)
async def heartbeat(
    request: Request,
    facade: FromDishka[AuthFacadeService],
    ip_resolver: FromDishka[RequestIpResolver],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> DeviceSessionResponse:
    account = await _current_account(facade, credentials)
    return await facade.heartbeat(
        account,
        fingerprint_raw=get_request_fingerprint(request),
        source_ip=ip_resolver.get_request_ip(request),
    )


@router.post("/devices/revoke-others", response_model=RevokeResponse, status_code=200)
async def revoke_other_devices(
    request: Request,
    facade: FromDishka[AuthFacadeService],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> RevokeResponse:
    account = await _current_account(facade, credentials)
    revoked = await facade.revoke_other_devices(
        account, fingerprint_raw=get_request_fingerprint(request)
    )
    return RevokeResponse(revoked=revoked)


@router.delete("/devices/{session_id}", response_model=RevokeResponse, status_code=200)
async def revoke_device(
    session_id: int,
    facade: FromDishka[AuthFacadeService],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> RevokeResponse:
    account = await _current_account(facade, credentials)
    await facade.revoke_device(account, session_id)
    return RevokeResponse(revoked=1)


@router.get("/trust", response_model=TrustAssessmentResponse | None, status_code=200)
async def get_device_trust(
    request: Request,
    facade: FromDishka[AuthFacadeService],
    ip_resolver: FromDishka[RequestIpResolver],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TrustAssessmentResponse | None:
    account = await _current_account(facade, credentials)
    return await facade.assess_current_device(
        account,
        fingerprint_raw=get_request_fingerprint(request),
        source_ip=ip_resolver.get_request_ip(request),
    )


@router.get("/activity", response_model=ActivityResponse, status_code=200)
async def get_recent_activity(
    facade: FromDishka[AuthFacadeService],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> ActivityResponse:
    account = await _current_account(facade, credentials)
    return await facade.recent_activity(account)


@router.get("/admin/stats", response_model=SecurityStatsResponse, status_code=200)
async def get_security_stats(
    facade: FromDishka[AuthFacadeService],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SecurityStatsResponse:
    account = await _current_account(facade, credentials)
    return await facade.security_stats(account)


@router.get("/admin/attempts", response_model=LoginAttemptListResponse, status_code=200)
async def get_login_attempts(
    facade: FromDishka[AuthFacadeService],
    params: LoginAttemptPaginationParams = Query(),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> LoginAttemptListResponse:
    account = await _current_account(facade, credentials)
    return await facade.list_attempts(account, params)
