"""
Who may watch which video. Decision order, first match wins:
admin → free lesson → active enrollment in the video's course → denied.
"""
import logging

from sqlalchemy.orm import Session

from lessonvault.errors import VideoNotFound
from lessonvault.repositories.catalog_repository import CatalogRepository
from lessonvault.schemas.user import Principal
from lessonvault.schemas.video import VideoRecord

logger = logging.getLogger(__name__)


class EntitlementChecker:
    """
    Pure read of catalog state; never writes. Denial is a False return, never an
    exception. Only a missing video raises (VideoNotFound), so callers can tell
    "no such video" from "not yours" and pick their own 403/404 policy.
    """

    def __init__(self, repository: CatalogRepository | None = None):
        self._repo = repository or CatalogRepository()

    def check(self, db: Session, principal: Principal, video_id: str) -> bool:
        video = self._repo.get_video(db, video_id)
        if video is None:
            raise VideoNotFound(f"video {video_id} does not exist", video_id=video_id)
        return self.check_record(db, principal, video)

    def check_record(self, db: Session, principal: Principal, video: VideoRecord) -> bool:
        """Same decision for a video the caller already looked up."""
        if principal.is_admin:
            return True
        if video.is_free:
            return True
        if self._repo.is_enrolled(db, principal.id, video.course_id):
            return True
        logger.debug("User %s not entitled to video %s (course %s)", principal.id, video.id, video.course_id)
        return False
