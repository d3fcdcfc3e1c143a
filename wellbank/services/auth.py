"""Auth service (JWT, password hashing)."""
from datetime import datetime, timedelta, timezone
import bcrypt
import jwt
from wellbank.config import get_settings
from wellbank.models.user import User

ACCESS = "access"
REFRESH = "refresh"


def _pwd_bytes(password: str, max_len: int = 72) -> bytes:
    return password.encode("utf-8")[:max_len]


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_pwd_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_pwd_bytes(password), bcrypt.gensalt(rounds=12)).decode("utf-8")


def _encode(payload: dict, secret: str) -> str:
    settings = get_settings()
    raw = jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)
    return raw if isinstance(raw, str) else raw.decode("utf-8")


def create_access_token(user: User) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    # PyJWT expects "sub" to be a string
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.active_role.value if user.active_role else None,
        "typ": ACCESS,
        "exp": expire,
    }
    return _encode(payload, settings.jwt_secret_key)


def create_refresh_token(user: User) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days)
    payload = {"sub": str(user.id), "typ": REFRESH, "exp": expire}
    return _encode(payload, settings.jwt_refresh_secret_key)


def decode_token_with_error(token: str, kind: str = ACCESS) -> tuple[dict | None, str | None]:
    """Decode JWT of the given kind; returns (payload, error_message)."""
    if not token or not isinstance(token, str):
        return None, "empty token"
    settings = get_settings()
    secret = settings.jwt_refresh_secret_key if kind == REFRESH else settings.jwt_secret_key
    try:
        payload = jwt.decode(token.strip(), secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        return None, str(e)
    except jwt.PyJWTError as e:
        return None, str(e)
    if payload.get("typ") != kind:
        return None, "wrong token type"
    return payload, None


def issue_tokens(user: User) -> dict:
    return {
        "accessToken": create_access_token(user),
        "refreshToken": create_refresh_token(user),
    }
