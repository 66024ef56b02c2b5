"""
Lesson video playback.

1. The lesson page asks GET /api/videos/{video_id}/stream-url with the user's
   Bearer token. Approval and entitlement are checked there, once, and a
   short-lived stream token is minted into the returned URL.
2. The <video> element then fetches GET /api/videos/stream/{token} as often as
   it likes (Range requests while seeking). Each request re-verifies the token;
   no session is needed, so the URL works as a plain <video src>.
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from lessonvault.auth import get_current_approved_principal, get_current_principal, get_optional_principal
from lessonvault.config import get_settings
from lessonvault.core.redis import get_token_denylist
from lessonvault.database import get_db
from lessonvault.errors import Forbidden, MediaNotFound, TokenExpired, VideoNotFound
from lessonvault.repositories.catalog_repository import CatalogRepository
from lessonvault.schemas.user import Principal
from lessonvault.schemas.video import RevokeStreamTokenRequest, StreamUrlResponse
from lessonvault.services.entitlement import EntitlementChecker
from lessonvault.services.media_storage import resolve_media_path, video_upload_dir
from lessonvault.services.range_streamer import RangeStreamer
from lessonvault.services.stream_service import StreamingEndpoint, StreamRequest
from lessonvault.services.stream_token import TokenCodec
from lessonvault.services.token_denylist import RedisTokenDenylist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])


# ---------- Dependencies: token codec (built at startup), Redis denylist (optional) ----------


def get_token_codec(request: Request) -> TokenCodec:
    """The codec created in the app lifespan; holds the signing secret."""
    return request.app.state.token_codec


def get_streaming_endpoint(
    codec: TokenCodec = Depends(get_token_codec),
    denylist: RedisTokenDenylist | None = Depends(get_token_denylist),
) -> StreamingEndpoint:
    settings = get_settings()
    return StreamingEndpoint(
        codec,
        video_upload_dir(),
        streamer=RangeStreamer(settings.video_stream_chunk_size),
        denylist=denylist,
        recheck_entitlement=settings.video_stream_recheck_entitlement,
        deny_as_not_found=settings.video_deny_as_not_found,
    )


# ---------- Playback URL (Bearer + approved + entitled) ----------


@router.get("/{video_id}/stream-url", response_model=StreamUrlResponse)
def get_stream_url(
    video_id: str,
    principal: Principal = Depends(get_current_approved_principal),
    codec: TokenCodec = Depends(get_token_codec),
    db: Session = Depends(get_db),
):
    """
    Returns a playback URL for this user and video, valid for the configured
    stream token lifetime (default 4 hours).
    With video_deny_as_not_found, users without access get the same 404 as for a
    missing video, so course contents cannot be probed.
    """
    settings = get_settings()
    repo = CatalogRepository()
    if not EntitlementChecker(repo).check(db, principal, video_id):
        if settings.video_deny_as_not_found:
            raise VideoNotFound(f"user {principal.id} not entitled (reported as not found)", video_id=video_id)
        raise Forbidden(f"user {principal.id} not entitled", video_id=video_id)
    video = repo.get_video(db, video_id)
    if video is None:
        raise VideoNotFound(f"video {video_id} went away", video_id=video_id)

    path = resolve_media_path(video_upload_dir(), video.path)
    if path is None or not path.is_file():
        raise MediaNotFound(f"no file for video {video_id} at {video.path}", video_id=video_id)

    token = codec.issue(video.id, principal.id)
    claims = codec.decode(token)
    logger.info("Issued stream token for video %s to user %s (expires %s)", video.id, principal.id, claims.exp)
    return StreamUrlResponse(
        video_id=video.id,
        stream_url=f"{settings.api_url.rstrip('/')}{router.prefix}/stream/{token}",
        token=token,
        expires_at=datetime.fromtimestamp(claims.exp, tz=timezone.utc),
    )


# ---------- Early revocation (owner or admin; needs Redis) ----------


@router.post("/stream/revoke")
async def revoke_stream_token(
    body: RevokeStreamTokenRequest,
    principal: Principal = Depends(get_current_principal),
    codec: TokenCodec = Depends(get_token_codec),
    denylist: RedisTokenDenylist | None = Depends(get_token_denylist),
):
    """Invalidate a stream URL before it expires, e.g. on logout."""
    if denylist is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stream link revocation is not available.")
    try:
        claims = codec.verify(body.token)
    except TokenExpired:
        return {"revoked": False, "message": "Stream link already expired."}
    if claims.principal_id != principal.id and not principal.is_admin:
        raise Forbidden(f"user {principal.id} cannot revoke a token of {claims.principal_id}", video_id=claims.video_id)
    remaining = claims.exp - int(codec.now())
    revoked = await denylist.revoke(claims.jti, remaining)
    if revoked:
        logger.info("Revoked stream token %s for video %s (owner %s)", claims.jti, claims.video_id, claims.principal_id)
    return {"revoked": revoked}


# ---------- Stream (token in path; Range supported) ----------


@router.get("/stream/{token}")
async def stream_video(
    token: str,
    request: Request,
    caller: Principal | None = Depends(get_optional_principal),
    endpoint: StreamingEndpoint = Depends(get_streaming_endpoint),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """
    Stream the video a token was minted for. 206 for `Range: bytes=start-[end]`,
    200 with the whole file otherwise; Content-Disposition inline (play, not download).
    A Bearer credential is optional, but when present it must belong to the token's user.
    """
    stream_request = StreamRequest(
        token=token,
        range_header=request.headers.get("range"),
        caller=caller,
    )
    return await endpoint.handle(db, stream_request)
