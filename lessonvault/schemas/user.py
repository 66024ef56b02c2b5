from datetime import datetime
from pydantic import BaseModel
from lessonvault.models.user import UserRole


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    is_approved: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Principal(BaseModel):
    """Authenticated caller as seen by the video access path. Never persisted."""
    id: str
    role: UserRole = UserRole.STANDARD
    is_approved: bool = False

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class TokenPayload(BaseModel):
    sub: str  # user id
    email: str
    exp: int
    type: str = "access"


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
