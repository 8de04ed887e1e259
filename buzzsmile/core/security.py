import secrets
from datetime import datetime, timedelta

import bcrypt
import jwt

from .config import settings

BCRYPT_ROUNDS = 12
RESET_TOKEN_TTL = timedelta(hours=1)


class InvalidToken(Exception):
    pass


class TokenExpired(InvalidToken):
    pass


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # not a bcrypt hash
        return False


def create_access_token(user_id, expires_in: timedelta = None, **claims) -> str:
    expires_in = expires_in or timedelta(days=settings.JWT_EXPIRES_DAYS)
    payload = {
        "userId": str(user_id),
        "exp": datetime.utcnow() + expires_in,
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired("Token expired.") from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken("Invalid token.") from e


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def generate_temporary_password(nbytes: int = 9) -> str:
    return secrets.token_urlsafe(nbytes)
