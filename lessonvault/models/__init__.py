from lessonvault.models.user import User, UserRole
from lessonvault.models.course import Course
from lessonvault.models.video import Video
from lessonvault.models.enrollment import UserCourse

__all__ = ["User", "UserRole", "Course", "Video", "UserCourse"]
