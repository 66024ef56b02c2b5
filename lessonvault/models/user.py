import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from lessonvault.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STANDARD = "STANDARD"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=True)
    full_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.STANDARD.value)
    # Set by an admin; unapproved users can log in but cannot get playback URLs
    is_approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
