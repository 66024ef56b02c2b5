"""
Errors raised by the video access path (token minting, token checks, streaming).
Each carries the HTTP status, a client-safe detail and a short code; the
handler registered in main.py turns them into JSON responses.
"""
from fastapi import status

# Token failures share one public message so clients cannot probe which check failed.
STREAM_LINK_MESSAGE = "Invalid or expired stream link. Reload the lesson page to get a new one."


class VideoAccessError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    detail: str = "Internal server error"

    def __init__(self, reason: str = "", *, video_id: str | None = None):
        super().__init__(reason or self.detail)
        self.reason = reason or self.detail
        self.video_id = video_id

    @property
    def kind(self) -> str:
        return type(self).__name__

    def headers(self) -> dict[str, str] | None:
        return None


class MissingSigningSecret(RuntimeError):
    """Raised at startup when no stream token secret is configured."""


# ---------- Identity / entitlement ----------


class Unauthenticated(VideoAccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    detail = "Not authenticated"

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(VideoAccessError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    detail = "You do not have access to this video."


class UserNotApproved(Forbidden):
    code = "USER_NOT_APPROVED"
    detail = "User not approved"


class VideoNotFound(VideoAccessError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "VIDEO_NOT_FOUND"
    detail = "Video not found."


# ---------- Stream token ----------


class StreamTokenError(VideoAccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "TOKEN_INVALID"
    detail = STREAM_LINK_MESSAGE


class TokenMalformed(StreamTokenError):
    pass


class TokenInvalidSignature(StreamTokenError):
    pass


class TokenRevoked(StreamTokenError):
    pass


class TokenExpired(StreamTokenError):
    code = "TOKEN_EXPIRED"


class TokenPrincipalMismatch(Forbidden):
    """Stream link presented together with another user's credential."""


# ---------- Streaming ----------


class RangeUnsatisfiable(VideoAccessError):
    status_code = 416
    code = "RANGE_NOT_SATISFIABLE"
    detail = "Requested range not satisfiable."

    def __init__(self, reason: str = "", *, total_length: int, video_id: str | None = None):
        super().__init__(reason, video_id=video_id)
        self.total_length = total_length

    def headers(self) -> dict[str, str] | None:
        return {"Content-Range": f"bytes */{self.total_length}"}


class MediaNotFound(VideoAccessError):
    """Catalog row exists but the file is gone: storage and catalog have drifted."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "MEDIA_NOT_FOUND"
    detail = "Video file not found."


class IOFailure(VideoAccessError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "IO_FAILURE"
    detail = "Video could not be read."
