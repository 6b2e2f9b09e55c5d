import secrets
import string
from datetime import timedelta

from jose import JWTError, ExpiredSignatureError, jwt
from passlib.context import CryptContext

from facility_booking.config import settings
from facility_booking.utils.exceptions import TokenExpiredException, UnauthorizedException
from facility_booking.utils.timeutil import utcnow

# ─── Password Hashing ─────────────────────────────────────────────────────────
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ─── JWT ──────────────────────────────────────────────────────────────────────
def create_access_token(user_id: int, role: str) -> str:
    """
    Create a short-lived JWT access token.
    Payload: sub (user_id), role, type, exp
    """
    expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> dict:
    """
    Decode and validate a JWT access token.
    Raises 401 if invalid, 401 (TOKEN_EXPIRED) if expired.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid token type")
        return payload
    except ExpiredSignatureError:
        raise TokenExpiredException()
    except JWTError:
        raise UnauthorizedException("Invalid or malformed token")


# ─── Check-in codes ───────────────────────────────────────────────────────────
CHECKIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_checkin_code(length: int | None = None) -> str:
    """Short opaque code printed under the QR image and typed in for manual check-in."""
    length = length or settings.CHECKIN_CODE_LENGTH
    return "".join(secrets.choice(CHECKIN_CODE_ALPHABET) for _ in range(length))
