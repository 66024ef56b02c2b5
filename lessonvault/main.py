import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from lessonvault.config import get_settings
from lessonvault.core.redis import close_redis
from lessonvault.errors import (
    IOFailure,
    MediaNotFound,
    StreamTokenError,
    TokenExpired,
    TokenPrincipalMismatch,
    VideoAccessError,
)
from lessonvault.routers import auth, videos
from lessonvault.services.stream_token import TokenCodec

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast: no stream token secret, no server
    app.state.token_codec = TokenCodec.from_settings(get_settings())
    try:
        yield
    finally:
        await close_redis()


app = FastAPI(title="Lesson Video API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
)

app.include_router(auth.router)
app.include_router(videos.router)


@app.exception_handler(VideoAccessError)
async def video_access_error_handler(request: Request, exc: VideoAccessError):
    """Client gets the generic detail and code; the log gets the specific kind and reason."""
    # Route template, not the raw path: stream URLs carry the token
    where = getattr(request.scope.get("route"), "path", "-")
    if isinstance(exc, (MediaNotFound, IOFailure)):
        logger.error("%s on %s (video %s): %s", exc.kind, where, exc.video_id, exc.reason)
    elif isinstance(exc, TokenExpired):
        logger.info("%s (video %s): %s", exc.kind, exc.video_id, exc.reason)
    elif isinstance(exc, (StreamTokenError, TokenPrincipalMismatch)):
        logger.warning("%s (video %s): %s", exc.kind, exc.video_id, exc.reason)
    else:
        logger.info("%s on %s (video %s): %s", exc.kind, where, exc.video_id, exc.reason)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers(),
    )


@app.get("/")
def root():
    return {"message": "Lesson Video API", "docs": "/docs"}
