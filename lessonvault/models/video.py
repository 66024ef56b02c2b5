"""Uploaded lesson video. Rows are written by the upload pipeline; this service only reads them."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, BigInteger, DateTime, ForeignKey
from lessonvault.database import Base


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="")
    path = Column(String(512), nullable=False)  # relative path under upload dir
    original_filename = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)  # bytes, as recorded at upload
    content_type = Column(String(100), nullable=True)  # video/mp4 etc
    is_free = Column(Boolean, nullable=False, default=False)  # preview lesson, no enrollment needed
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
