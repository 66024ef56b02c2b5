from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./app.db"

    # JWT (login session)
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 1 day

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:3000"

    # Public base URL of this API; playback URLs are built from it
    api_url: str = "http://localhost:8001"

    # Media root: folder holding uploaded lesson videos (empty = backend/uploads/videos)
    video_upload_dir: str = ""

    # Stream token signing. No default: the app refuses to start without it.
    video_stream_secret: str = ""
    video_stream_algorithm: str = "HS256"

    # Stream token lifetime (minutes); covers a full viewing session
    video_stream_token_expire_minutes: int = 60 * 4

    # Allowed clock skew when checking stream token expiry (seconds)
    video_stream_token_leeway_seconds: int = 0

    # Bytes read from disk per chunk while streaming
    video_stream_chunk_size: int = 1024 * 1024  # 1 MB

    # Reload the token's user and re-run the entitlement check on every stream request
    video_stream_recheck_entitlement: bool = True

    # Answer 404 instead of 403 when a user is not entitled to a video
    video_deny_as_not_found: bool = False

    # Redis (optional stream token denylist; empty = no early revocation)
    redis_url: str = ""  # e.g. redis://localhost:6379/0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
