from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from lessonvault.config import get_settings
from lessonvault.database import get_db
from lessonvault.errors import Unauthenticated, UserNotApproved
from lessonvault.models.user import User
from lessonvault.repositories.catalog_repository import principal_from_user
from lessonvault.schemas.user import Principal, TokenPayload

settings = get_settings()
security = HTTPBearer(auto_error=False)

# Use Argon2 for password hashing
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)

def create_access_token(user_id: str, email: str) -> str:
    expire = datetime.utcnow() + timedelta(
        minutes=settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

def decode_token(token: str) -> TokenPayload | None:
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
        data = TokenPayload(
            sub=payload["sub"],
            email=payload["email"],
            exp=payload["exp"],
            type=payload.get("type", ""),
        )
    except (JWTError, KeyError, ValueError):
        return None
    # Stream tokens and other JWTs never authenticate a session
    if data.type != "access":
        return None
    return data


def authenticate_bearer(credential: str, db: Session) -> User:
    """Resolve a bearer credential to its user or raise Unauthenticated."""
    payload = decode_token(credential)
    if not payload:
        raise Unauthenticated("invalid or expired access token")
    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise Unauthenticated(f"user {payload.sub} not found")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if not credentials:
        raise Unauthenticated("no bearer credential")
    return authenticate_bearer(credentials.credentials, db)


def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    return principal_from_user(user)


def get_current_approved_principal(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Logged in and approved by an admin. Required before a playback URL is handed out."""
    if not principal.is_approved:
        raise UserNotApproved(f"user {principal.id} not approved")
    return principal


def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Principal | None:
    """For stream requests: None without a credential, 401 for a bad one."""
    if not credentials:
        return None
    return principal_from_user(authenticate_bearer(credentials.credentials, db))
