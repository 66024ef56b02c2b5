"""
Read-only access to the catalog the video access path depends on: videos,
enrollments and the users behind stream tokens. Rows are owned and written by
the admin/upload side of the platform; nothing here commits.
All operations are sync (used from sync endpoints or run_in_executor from async).
"""
from pathlib import Path

from sqlalchemy.orm import Session

from lessonvault.models.enrollment import UserCourse
from lessonvault.models.user import User, UserRole
from lessonvault.models.video import Video
from lessonvault.schemas.user import Principal
from lessonvault.schemas.video import DEFAULT_VIDEO_CONTENT_TYPE, VideoRecord


def _to_record(video: Video) -> VideoRecord:
    ct = (video.content_type or "").split(";")[0].strip().lower()
    return VideoRecord(
        id=video.id,
        course_id=video.course_id,
        path=Path(video.path),
        length=video.file_size,
        content_type=ct or DEFAULT_VIDEO_CONTENT_TYPE,
        is_free=bool(video.is_free),
    )


class CatalogRepository:
    def get_video(self, db: Session, video_id: str) -> VideoRecord | None:
        """Active video by id, or None. Inactive videos are treated as absent."""
        video = db.query(Video).filter(Video.id == video_id, Video.is_active == True).first()
        if video is None:
            return None
        return _to_record(video)

    def is_enrolled(self, db: Session, principal_id: str, course_id: str) -> bool:
        """True if an active enrollment links the user to the course."""
        return (
            db.query(UserCourse.id)
            .filter(
                UserCourse.user_id == principal_id,
                UserCourse.course_id == course_id,
                UserCourse.is_active == True,
            )
            .limit(1)
            .first()
            is not None
        )

    def get_principal(self, db: Session, user_id: str) -> Principal | None:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        return principal_from_user(user)


def principal_from_user(user: User) -> Principal:
    role = UserRole.ADMIN if user.role == UserRole.ADMIN.value else UserRole.STANDARD
    return Principal(id=user.id, role=role, is_approved=bool(user.is_approved))
