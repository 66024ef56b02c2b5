"""
Short-lived signed tokens for video stream URLs (no Bearer needed in <video src>).

A token is a compact JWS (HS256 by default) over
{video_id, sub, iat, exp, jti, type="video_stream"}. It is minted only after the
entitlement check passed and is verified on every stream request: signature
first, then claims, then expiry against the codec's clock. No server-side
lookup is involved.
"""
import binascii
import json
import time
import uuid
from datetime import timedelta
from typing import Callable

from jose import jws, jwt
from jose.exceptions import JWSError
from jose.utils import base64url_decode, base64url_encode
from pydantic import ValidationError

from lessonvault.config import Settings
from lessonvault.errors import MissingSigningSecret, TokenExpired, TokenInvalidSignature, TokenMalformed
from lessonvault.schemas.video import STREAM_TOKEN_TYPE, StreamTokenClaims

# Longest token we bother to parse; real ones are ~250 characters.
MAX_TOKEN_LENGTH = 2048


def _is_canonical_segment(segment: bytes) -> bool:
    """
    base64url decoding is lenient (ignores stray characters and unused low bits
    of the last character), so two different strings can carry the same bytes.
    Only the one canonical spelling is accepted.
    """
    try:
        return base64url_encode(base64url_decode(segment)) == segment
    except (binascii.Error, ValueError, TypeError):
        return False


class TokenCodec:
    """Holds the signing secret. Immutable after construction; safe to share between requests."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        default_ttl: timedelta = timedelta(hours=4),
        leeway_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise MissingSigningSecret("video stream secret is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self._default_ttl = default_ttl
        self._leeway = leeway_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "TokenCodec":
        return cls(
            settings.video_stream_secret,
            algorithm=settings.video_stream_algorithm,
            default_ttl=timedelta(minutes=settings.video_stream_token_expire_minutes),
            leeway_seconds=settings.video_stream_token_leeway_seconds,
            **kwargs,
        )

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def now(self) -> float:
        return self._clock()

    def issue(self, video_id: str, principal_id: str, ttl: timedelta | None = None) -> str:
        """Mint a token for one video and one user. Caller must have checked entitlement."""
        ttl = ttl if ttl is not None else self._default_ttl
        iat = int(self._clock())
        payload = {
            "video_id": video_id,
            "sub": principal_id,
            "iat": iat,
            "exp": iat + int(ttl.total_seconds()),
            "jti": uuid.uuid4().hex,
            "type": STREAM_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> StreamTokenClaims:
        """
        Return the token's claims or raise TokenMalformed / TokenInvalidSignature /
        TokenExpired. Same token and same clock reading give the same verdict.
        """
        claims = self.decode(token)
        if self._clock() >= claims.exp + self._leeway:
            raise TokenExpired(f"stream token expired at {claims.exp}", video_id=claims.video_id)
        return claims

    def decode(self, token: str) -> StreamTokenClaims:
        """Signature and claim checks without the expiry check."""
        if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH or not token.isascii():
            raise TokenMalformed("token is not a short ASCII string")
        raw = token.encode("ascii")
        segments = raw.split(b".")
        if len(segments) != 3 or not all(_is_canonical_segment(s) for s in segments):
            raise TokenMalformed("token is not a canonical compact JWS")

        try:
            header = jws.get_unverified_header(raw)
        except JWSError as e:
            raise TokenMalformed(f"stream token header rejected: {e}") from None
        if header.get("alg") != self._algorithm:
            raise TokenMalformed(f"stream token uses algorithm {header.get('alg')!r}")

        # Structure and algorithm are already checked, so a failure here is the signature.
        try:
            payload = jws.verify(raw, self._secret, algorithms=[self._algorithm])
        except JWSError:
            raise TokenInvalidSignature("stream token signature mismatch") from None

        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise TokenMalformed("stream token payload is not JSON") from None
        if not isinstance(data, dict):
            raise TokenMalformed("stream token payload is not an object")
        try:
            claims = StreamTokenClaims.model_validate(data, strict=True)
        except ValidationError as e:
            raise TokenMalformed(f"stream token claims invalid: {e.error_count()} error(s)") from None
        if claims.type != STREAM_TOKEN_TYPE:
            raise TokenMalformed(f"wrong token type {claims.type!r}", video_id=claims.video_id)
        return claims
