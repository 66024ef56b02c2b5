from datetime import datetime
from pathlib import Path
from pydantic import BaseModel

STREAM_TOKEN_TYPE = "video_stream"
DEFAULT_VIDEO_CONTENT_TYPE = "video/mp4"


class VideoRecord(BaseModel):
    """Catalog view of one video: where it lives and who may watch it."""
    id: str
    course_id: str
    path: Path  # relative to the media root
    length: int | None = None  # recorded at upload; the file on disk is authoritative
    content_type: str = DEFAULT_VIDEO_CONTENT_TYPE
    is_free: bool = False


class StreamTokenClaims(BaseModel):
    video_id: str
    sub: str  # principal id
    iat: int
    exp: int
    jti: str
    type: str = STREAM_TOKEN_TYPE

    @property
    def principal_id(self) -> str:
        return self.sub


class StreamUrlResponse(BaseModel):
    video_id: str
    stream_url: str
    token: str
    expires_at: datetime


class RevokeStreamTokenRequest(BaseModel):
    token: str
