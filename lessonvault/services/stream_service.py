"""
Serving one stream request: token in, bytes out.

RECEIVE_REQUEST → VERIFY_TOKEN → RESOLVE_FILE → SERVE_RANGE | SERVE_FULL → DONE,
with ERROR reachable from every step. Each request gets its own StreamRequest;
nothing is shared between requests except the read-only collaborators, so any
number of seeks for the same video can run side by side.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from lessonvault.errors import (
    Forbidden,
    MediaNotFound,
    TokenPrincipalMismatch,
    TokenRevoked,
    VideoAccessError,
    VideoNotFound,
)
from lessonvault.repositories.catalog_repository import CatalogRepository
from lessonvault.schemas.user import Principal
from lessonvault.schemas.video import StreamTokenClaims, VideoRecord
from lessonvault.services.entitlement import EntitlementChecker
from lessonvault.services.media_storage import resolve_media_path
from lessonvault.services.range_streamer import RangeStreamer, probe_media
from lessonvault.services.stream_token import TokenCodec
from lessonvault.services.token_denylist import RedisTokenDenylist

logger = logging.getLogger(__name__)


class StreamState(str, enum.Enum):
    RECEIVE_REQUEST = "receive_request"
    VERIFY_TOKEN = "verify_token"
    RESOLVE_FILE = "resolve_file"
    SERVE_RANGE = "serve_range"
    SERVE_FULL = "serve_full"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamRequest:
    token: str
    range_header: str | None = None
    caller: Principal | None = None  # set when the request also carried a Bearer credential
    state: StreamState = StreamState.RECEIVE_REQUEST
    claims: StreamTokenClaims | None = None
    video: VideoRecord | None = None
    path: Path | None = None
    total_length: int = 0
    error: VideoAccessError | None = None


class StreamingEndpoint:
    def __init__(
        self,
        codec: TokenCodec,
        media_root: Path,
        *,
        repository: CatalogRepository | None = None,
        entitlements: EntitlementChecker | None = None,
        streamer: RangeStreamer | None = None,
        denylist: RedisTokenDenylist | None = None,
        recheck_entitlement: bool = True,
        deny_as_not_found: bool = False,
    ):
        self._codec = codec
        self._media_root = media_root
        self._repo = repository or CatalogRepository()
        self._entitlements = entitlements or EntitlementChecker(self._repo)
        self._streamer = streamer or RangeStreamer()
        self._denylist = denylist
        self._recheck = recheck_entitlement
        self._deny_as_not_found = deny_as_not_found

    async def handle(self, db: Session, request: StreamRequest) -> StreamingResponse:
        try:
            self._advance(request, StreamState.VERIFY_TOKEN)
            await self._verify_token(request)

            self._advance(request, StreamState.RESOLVE_FILE)
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, lambda: self._resolve_file(db, request))

            serve = StreamState.SERVE_RANGE if request.range_header is not None else StreamState.SERVE_FULL
            self._advance(request, serve)
            response = self._streamer.stream(
                request.path,
                request.total_length,
                request.range_header,
                request.video.content_type,
                video_id=request.video.id,
            )
        except VideoAccessError as e:
            request.error = e
            self._advance(request, StreamState.ERROR)
            raise
        self._advance(request, StreamState.DONE)
        return response

    def _advance(self, request: StreamRequest, state: StreamState) -> None:
        logger.debug("stream %s: %s -> %s", _token_tag(request.token), request.state.value, state.value)
        request.state = state

    async def _verify_token(self, request: StreamRequest) -> None:
        claims = self._codec.verify(request.token)
        if self._denylist is not None and await self._denylist.is_revoked(claims.jti):
            raise TokenRevoked(f"stream token {claims.jti} revoked", video_id=claims.video_id)
        if request.caller is not None and request.caller.id != claims.principal_id:
            raise TokenPrincipalMismatch(
                f"token minted for {claims.principal_id}, presented by {request.caller.id}",
                video_id=claims.video_id,
            )
        request.claims = claims

    def _resolve_file(self, db: Session, request: StreamRequest) -> None:
        claims = request.claims
        video = self._repo.get_video(db, claims.video_id)
        if video is None:
            raise VideoNotFound(f"video {claims.video_id} not in catalog", video_id=claims.video_id)

        if self._recheck:
            principal = self._repo.get_principal(db, claims.principal_id)
            if principal is None or not principal.is_approved:
                raise Forbidden(f"token owner {claims.principal_id} missing or unapproved", video_id=video.id)
            if not self._entitlements.check_record(db, principal, video):
                if self._deny_as_not_found:
                    raise VideoNotFound(
                        f"token owner {principal.id} no longer entitled (reported as not found)", video_id=video.id
                    )
                raise Forbidden(f"token owner {principal.id} no longer entitled", video_id=video.id)

        path = resolve_media_path(self._media_root, video.path)
        if path is None:
            raise MediaNotFound(f"storage path {video.path} escapes media root", video_id=video.id)
        total = probe_media(path, video.id)
        if video.length is not None and video.length != total:
            logger.warning(
                "Video %s: catalog size %s differs from %s bytes on disk; serving the file as it is",
                video.id, video.length, total,
            )
        request.video = video
        request.path = path
        request.total_length = total


def _token_tag(token: str) -> str:
    """Short, non-secret handle for log lines (signature tail)."""
    return token[-8:] if token else "-"
