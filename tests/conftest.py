import os
import tempfile
from pathlib import Path

# Settings are read once (lru_cache) and the engine is built at import time,
# so the environment has to be in place before lessonvault is imported.
_TMP = Path(tempfile.mkdtemp(prefix="lessonvault-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["SECRET_KEY"] = "test-session-secret"
os.environ["VIDEO_STREAM_SECRET"] = "test-stream-secret"
os.environ["VIDEO_UPLOAD_DIR"] = str(_TMP / "media")
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient

from lessonvault.auth import create_access_token, hash_password
from lessonvault.config import get_settings
from lessonvault.core.redis import get_token_denylist
from lessonvault.database import Base, SessionLocal, engine
from lessonvault.main import app
from lessonvault.models import Course, User, UserCourse, UserRole, Video
from lessonvault.routers.videos import get_token_codec
from lessonvault.services.stream_token import TokenCodec
from lessonvault.services.token_denylist import RedisTokenDenylist

STREAM_SECRET = "test-stream-secret"
START_TIME = 1_800_000_000.0


def video_bytes(size: int) -> bytes:
    """Deterministic content so any byte window can be checked against a slice."""
    return (bytes(range(256)) * (size // 256 + 1))[:size]


class FakeRedis:
    """Just the async calls the denylist makes."""

    def __init__(self, fail: bool = False):
        self.store: dict[str, tuple[str, int]] = {}
        self.fail = fail

    async def exists(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return 1 if key in self.store else 0

    async def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = (value, ex)
        return True


class FrozenClock:
    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def codec(clock):
    return TokenCodec(STREAM_SECRET, clock=clock)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def media_root(tmp_path, monkeypatch):
    root = tmp_path / "media"
    root.mkdir()
    monkeypatch.setattr(get_settings(), "video_upload_dir", str(root))
    return root


@pytest.fixture
def client(db, codec, media_root):
    with TestClient(app) as c:
        app.dependency_overrides[get_token_codec] = lambda: codec
        try:
            yield c
        finally:
            app.dependency_overrides.clear()


@pytest.fixture
def fake_redis(client):
    """Turns revocation on, backed by an in-memory Redis stand-in."""
    redis = FakeRedis()
    denylist = RedisTokenDenylist(redis)
    app.dependency_overrides[get_token_denylist] = lambda: denylist
    return redis


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.STANDARD, approved: bool = True, password: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            full_name=f"User {counter['n']}",
            password=hash_password(password) if password else None,
            role=role.value,
            is_approved=approved,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def course(db):
    c = Course(title="Droit des contrats")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def make_video(db, media_root, course):
    def _make(
        size: int = 10_000,
        *,
        is_free: bool = False,
        content_type: str | None = "video/mp4",
        write_file: bool = True,
        course_id: str | None = None,
        path: str | None = None,
    ) -> Video:
        video = Video(
            course_id=course_id or course.id,
            title="Lesson",
            path=path or "placeholder",
            file_size=size,
            content_type=content_type,
            is_free=is_free,
        )
        db.add(video)
        db.flush()
        if path is None:
            video.path = f"{video.id}.mp4"
        if write_file:
            (media_root / video.path).write_bytes(video_bytes(size))
        db.commit()
        db.refresh(video)
        return video

    return _make


@pytest.fixture
def enroll(db):
    def _enroll(user: User, course_id: str, active: bool = True) -> UserCourse:
        link = UserCourse(user_id=user.id, course_id=course_id, is_active=active)
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    return _enroll


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
