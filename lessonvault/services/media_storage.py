"""Where lesson videos live on disk (the media root) and safe lookup of a video's file under it."""
from pathlib import Path
from lessonvault.config import get_settings


def video_upload_dir() -> Path:
    settings = get_settings()
    if settings.video_upload_dir:
        return Path(settings.video_upload_dir)
    return Path(__file__).resolve().parent.parent.parent / "uploads" / "videos"


def resolve_media_path(media_root: Path, relative_path: Path | str) -> Path | None:
    """Resolve path under media_root. Return None if it escapes the root (path traversal)."""
    base = media_root.resolve()
    try:
        full = (base / relative_path).resolve()
        full.relative_to(base)  # raises ValueError if path escaped
    except (ValueError, OSError):
        return None
    return full
